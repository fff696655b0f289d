"""Pipeline stages.

Each module implements one stage of acquisition extraction:
- load_snapshot: Geometry Store (read and partition snapshots)
- dissolve: Feature Merger
- set_operations: difference / union / clip primitives
- artifact_filter: geodesic area and sliver filtering
- winding: ring-order normalization
- manual_overrides: hand-authored substitute polygons
- coverage: gap / overlap check of the final output
- write_output: FeatureCollection and report writers
"""
