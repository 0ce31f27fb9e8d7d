"""Economic-activity (ACT_ECON) code taxonomy.

Loads the flat registry extract and rebuilds the three-level hierarchy
(major / intermediate / specific) from the trailing zeros of each code.
"""
