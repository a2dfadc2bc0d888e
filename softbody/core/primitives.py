"""Procedural geometry for tests and demo scenes.

Mesh file parsing is left to the caller; these builders produce the same
containers a loader would.
"""

import numpy as np
from typing import Tuple

from .mesh import TriangleMesh, TetrahedralMesh


def grid_mesh(
    nx: int,
    nz: int,
    size: Tuple[float, float] = (1.0, 1.0),
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> TriangleMesh:
    """Flat rectangular cloth in the x-z plane, two triangles per cell."""
    dx, dz = size[0] / nx, size[1] / nz
    ox, oy, oz = origin
    nodes = []
    for k in range(nz + 1):
        for i in range(nx + 1):
            nodes.append([ox + i * dx, oy, oz + k * dz])
    nodes = np.array(nodes, dtype=np.float64)

    triangles = []
    for k in range(nz):
        for i in range(nx):
            n0 = i + k * (nx + 1)
            n1 = n0 + 1
            n2 = n0 + (nx + 1) + 1
            n3 = n0 + (nx + 1)
            triangles.append([n0, n2, n1])
            triangles.append([n0, n3, n2])
    return TriangleMesh(nodes, np.array(triangles, dtype=np.int64))


def sphere_mesh(segments: int = 8, radius: float = 1.0) -> TriangleMesh:
    """Closed UV sphere with single pole vertices and outward-facing triangles."""
    n_rings = segments - 1
    nodes = [[0.0, radius, 0.0]]
    for y in range(1, segments):
        theta = np.pi * y / segments
        for x in range(segments):
            phi = 2.0 * np.pi * x / segments
            nodes.append([
                radius * np.cos(phi) * np.sin(theta),
                radius * np.cos(theta),
                radius * np.sin(phi) * np.sin(theta),
            ])
    nodes.append([0.0, -radius, 0.0])
    nodes = np.array(nodes, dtype=np.float64)
    south = len(nodes) - 1

    def ring(y, x):
        return 1 + (y - 1) * segments + (x % segments)

    triangles = []
    for x in range(segments):
        triangles.append([0, ring(1, x + 1), ring(1, x)])
    for y in range(1, n_rings):
        for x in range(segments):
            a, b = ring(y, x), ring(y, x + 1)
            c, d = ring(y + 1, x), ring(y + 1, x + 1)
            triangles.append([a, b, d])
            triangles.append([a, d, c])
    for x in range(segments):
        triangles.append([south, ring(n_rings, x), ring(n_rings, x + 1)])
    return TriangleMesh(nodes, np.array(triangles, dtype=np.int64))


def single_tet(
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0),
    scale: float = 1.0,
) -> TetrahedralMesh:
    """Right-corner tetrahedron, positively oriented."""
    nodes = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, 0.0, 1.0],
    ]) * scale + np.asarray(origin, dtype=np.float64)
    return TetrahedralMesh(nodes, np.array([[0, 1, 2, 3]], dtype=np.int64))


# Kuhn subdivision: six tetrahedra sharing the (0,0,0)-(1,1,1) diagonal.
# Local hex corners are numbered by bits: corner = i + 2*j + 4*k.
_KUHN_TETS = np.array([
    [0, 1, 3, 7],
    [0, 1, 5, 7],
    [0, 2, 3, 7],
    [0, 2, 6, 7],
    [0, 4, 5, 7],
    [0, 4, 6, 7],
], dtype=np.int64)


def tet_box(
    nx: int = 1,
    ny: int = 1,
    nz: int = 1,
    size: Tuple[float, float, float] = (1.0, 1.0, 1.0),
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> TetrahedralMesh:
    """Axis-aligned box split into conforming tetrahedra (6 per cell)."""
    dx, dy, dz = size[0] / nx, size[1] / ny, size[2] / nz
    ox, oy, oz = origin
    nodes = []
    for k in range(nz + 1):
        for j in range(ny + 1):
            for i in range(nx + 1):
                nodes.append([ox + i * dx, oy + j * dy, oz + k * dz])
    nodes = np.array(nodes, dtype=np.float64)

    def node_id(i, j, k):
        return i + j * (nx + 1) + k * (nx + 1) * (ny + 1)

    tets = []
    for k in range(nz):
        for j in range(ny):
            for i in range(nx):
                corners = [
                    node_id(i + (c & 1), j + ((c >> 1) & 1), k + ((c >> 2) & 1))
                    for c in range(8)
                ]
                for local in _KUHN_TETS:
                    tets.append([corners[c] for c in local])
    tets = np.array(tets, dtype=np.int64)

    # Positive orientation: det[x1-x0, x2-x0, x3-x0] > 0
    x = nodes[tets]
    det = np.linalg.det((x[:, 1:] - x[:, :1]).transpose(0, 2, 1))
    flip = det < 0
    tets[flip] = tets[flip][:, [0, 2, 1, 3]]
    return TetrahedralMesh(nodes, tets)
