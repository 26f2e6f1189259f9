"""
Pipeline stages for groseq.

This package contains all stage implementations organized by category:
- preprocess_stages: Adapter trimming
- alignment_stages: Alignment, BAM conversion, MAPQ filtering and sorting
- homer_stages: Tag directory and UCSC track generation
"""

from .alignment_stages import AlignReadsStage, ConvertAlignmentStage, SortFilterStage
from .homer_stages import TagDirectoryStage, UcscTrackStage
from .preprocess_stages import TrimAdapterStage

__all__ = [
    # Preprocessing stages
    "TrimAdapterStage",
    # Alignment stages
    "AlignReadsStage",
    "ConvertAlignmentStage",
    "SortFilterStage",
    # HOMER stages
    "TagDirectoryStage",
    "UcscTrackStage",
]
