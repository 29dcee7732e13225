"""Mesh connectivity module

"""
import numpy as np

# dtype enforced for arrays of node labels;
# used throughout the package; changing it here should change it everywhere
index_dtype = np.int32
