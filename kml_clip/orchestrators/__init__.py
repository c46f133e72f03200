"""Analysis orchestration.

Runs the stages of one analysis in order against the corpora held by an
``AnalysisSession``:
1. Adapt the area of interest → prepare the clip geometry
2. Intersect the polygon corpus → classify against the point corpus
3. Clip the context layers → colors, navigation index, metrics
"""
