"""
Utility package setup.

Shared helpers: exceptions, the engine error decorator, constants, DataFrame
persistence, hashing and model loading. Enables pandas Copy-on-Write globally
for the DataFrames built while loading training sets and writing reports.
"""

import pandas as pd

# Reduce implicit copies across the pipeline.
pd.options.mode.copy_on_write = True
