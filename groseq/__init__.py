# File: groseq/__init__.py
# Location: groseq/groseq/__init__.py

"""
groseq Package.

This package drives a fixed GRO-seq preprocessing pipeline: 3' adapter
trimming, bowtie2 alignment, samtools conversion/filtering/sorting and
HOMER tag directory and UCSC track generation.
"""

from .version import __version__
