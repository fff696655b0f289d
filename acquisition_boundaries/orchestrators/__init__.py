"""Pipeline orchestration.

- acquisition_pipeline: step-by-step driver that turns snapshots into
  acquisition features
"""
