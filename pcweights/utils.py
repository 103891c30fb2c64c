"""General utility functions."""

import heapq
import logging
import time
from functools import wraps
import numpy as np

logger = logging.getLogger(__name__)


def time_function(func):
    """
    Decorator to time function execution.
    For recursive functions, only times the top-level call.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not hasattr(wrapper, '_in_call'):
            wrapper._in_call = False

        if not wrapper._in_call:
            wrapper._in_call = True
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                elapsed = time.time() - start_time
                logger.debug("%s took %.6f seconds", func.__name__, elapsed)
                return result
            finally:
                wrapper._in_call = False
        else:
            return func(*args, **kwargs)

    return wrapper


def knn_search(query_point, root, points_array, k=1, max_dist=np.inf):
    """
    Iterative k-nearest neighbor search in KD-tree.

    Args:
        query_point: Point to find the neighbors of
        root: Root node of the KD-tree
        points_array: Numpy array of the points the tree was built on
        k: Number of neighbors
        max_dist: Neighbors farther than this are not reported

    Returns:
        Tuple of (indices, distances), each of length k, sorted by ascending
        distance. Missing neighbors are padded with index -1 and distance inf.
    """
    # max-heap of the k best as (-distance, index)
    best = []

    def bound():
        if len(best) < k:
            return max_dist
        return -best[0][0]

    def offer(dist, index):
        if dist > max_dist:
            return
        if len(best) < k:
            heapq.heappush(best, (-dist, index))
        elif dist < -best[0][0]:
            heapq.heapreplace(best, (-dist, index))

    stack = [root]
    while stack:
        node = stack.pop()
        if node is None:
            continue

        # Leaf node: check all points in the leaf
        if node.indices is not None:
            leaf_points = points_array[node.indices]
            dists = np.linalg.norm(leaf_points - query_point, axis=1)
            for index, dist in zip(node.indices, dists):
                offer(float(dist), int(index))
            continue

        # Internal node: check node point
        offer(float(np.linalg.norm(node.point - query_point)), node.index)

        # Traverse tree
        axis = node.axis
        if query_point[axis] < node.point[axis]:
            near_node, far_node = node.left, node.right
        else:
            near_node, far_node = node.right, node.left

        if abs(query_point[axis] - node.point[axis]) <= bound():
            stack.append(far_node)
        stack.append(near_node)

    found = sorted((-neg_dist, index) for neg_dist, index in best)
    indices = np.full(k, -1, dtype=np.int64)
    distances = np.full(k, np.inf)
    for rank, (dist, index) in enumerate(found):
        indices[rank] = index
        distances[rank] = dist
    return indices, distances
