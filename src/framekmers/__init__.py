"""
Kmer reading-frame statistics: count which coding frame every DNA kmer falls in across annotated genomes,
persist the counts, and classify unannotated DNA from the exported kmer-to-frame table.
"""
from warnings import warn


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class FrameKmersWarning(Warning): pass
class InputWarning(FrameKmersWarning): pass


__all__ = ['FrameKmersWarning', 'InputWarning', 'warn']
