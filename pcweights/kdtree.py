"""KD-Tree over the reference points, used to build correspondence sets."""

import numpy as np
from .utils import time_function


class Node:
    def __init__(self):
        self.point = None
        self.index = None
        self.left = None
        self.right = None
        self.axis = None
        self.indices = None
    def set_point(self, point, index):
        # index into the tree's points array, needed to report match ids
        self.point = point
        self.index = index
    def set_left(self, left):
        self.left = left
    def set_right(self, right):
        self.right = right
    def set_axis(self, axis):
        self.axis = axis
    def set_indices(self, indices):
        self.indices = indices

class KDTree:
    def __init__(self, leaf_size=128, dimension=3):
        self.root = None
        self.points = None
        self.leaf_size = max(1, int(leaf_size))
        self.dimension = dimension

    @time_function
    def build(self, points=None, depth=0, indices=None):
        # Initialize indices only at the top-level call
        if indices is None:
            pts = self.points if points is None else points
            if pts is None or pts.shape[0] == 0:
                self.root = None
                return None
            indices = np.arange(pts.shape[0], dtype=np.int64)
            # Keep a reference to the canonical points array
            if points is not None:
                self.points = points
            self.root = self.build(depth=depth, indices=indices)
            return self.root

        n_points = indices.shape[0]

        # No points
        if n_points == 0:
            return None

        # Leaf: store the indices to avoid creating millions of nodes
        if n_points <= self.leaf_size:
            leaf = Node()
            leaf.set_axis(depth % self.dimension)
            leaf.set_indices(indices)
            return leaf

        # Choose splitting axis
        axis = depth % self.dimension

        # Compute median position and in-place partition indices by the chosen axis
        median_index = n_points // 2
        order = np.argpartition(self.points[indices, axis], median_index)
        indices[:] = indices[order]

        median_point_index = indices[median_index]

        node = Node()
        node.set_axis(axis)
        node.set_point(self.points[median_point_index], int(median_point_index))

        # Build subtrees using views (no copies) into the shared indices array
        left_view = indices[:median_index]
        right_view = indices[median_index+1:]

        node.set_left(self.build(depth=depth+1, indices=left_view))
        node.set_right(self.build(depth=depth+1, indices=right_view))
        return node
