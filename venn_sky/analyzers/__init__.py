from venn_sky.analyzers.overlap import compute_overlap

__all__ = ["compute_overlap"]
