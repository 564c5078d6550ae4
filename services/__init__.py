"""
Summarization services
Caption normalization, segmentation, worker pool, assembly and the pipeline around them
"""
