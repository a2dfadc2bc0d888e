"""벡터화 전역 조립.

요소별 기여(벡터, 블록 행렬)를 numpy 배치 연산으로 전역 희소 시스템에
scatter-add 한다. COO triplet을 한 번에 생성한 뒤 CSR로 변환하며,
이때 중복 (행, 열) 항목은 합산된다. 정점을 공유하는 요소들의 기여는
덮어쓰지 않고 누적된다.
"""

import numpy as np
from scipy import sparse

from ..core.element import tet_mass_template


def element_dofs(elements: np.ndarray, dim: int = 3) -> np.ndarray:
    """요소별 전역 DOF 인덱스.

    Args:
        elements: 요소 연결 (n_elements, nodes_per_elem)
        dim: 공간 차원

    Returns:
        (n_elements, nodes_per_elem * dim) int64
    """
    elements = np.asarray(elements, dtype=np.int64)
    n_elem, npe = elements.shape
    elem_dofs = np.empty((n_elem, npe * dim), dtype=np.int64)
    for a in range(npe):
        for d in range(dim):
            elem_dofs[:, a * dim + d] = elements[:, a] * dim + d
    return elem_dofs


def assemble_vector(dofs: np.ndarray, values: np.ndarray, n_dof: int) -> np.ndarray:
    """요소 벡터 scatter-add.

    Args:
        dofs: (n_elements, dpe) 전역 DOF 인덱스
        values: (n_elements, dpe) 요소 기여
        n_dof: 전역 DOF 수

    Returns:
        (n_dof,) 전역 벡터
    """
    out = np.zeros(n_dof)
    np.add.at(out, dofs.reshape(-1), values.reshape(-1))
    return out


def assemble_matrix(
    dofs: np.ndarray,
    blocks: np.ndarray,
    n_dof: int,
) -> sparse.csr_matrix:
    """요소 블록 행렬 scatter-add.

    Args:
        dofs: (n_elements, dpe) 전역 DOF 인덱스
        blocks: (n_elements, dpe, dpe) 요소 행렬
        n_dof: 전역 DOF 수

    Returns:
        (n_dof, n_dof) CSR 행렬 (중복 항목 합산)
    """
    n_elem, dpe = dofs.shape
    # COO 행/열 인덱스: (n_elem, dpe, dpe) → (n_elem * dpe^2,)
    rows = np.repeat(dofs, dpe, axis=1)
    cols = np.tile(dofs, (1, dpe))
    vals = blocks.reshape(n_elem, -1)

    K = sparse.coo_matrix(
        (vals.reshape(-1), (rows.reshape(-1), cols.reshape(-1))),
        shape=(n_dof, n_dof),
    )
    # COO → CSR 변환 시 중복 합산
    return K.tocsr()


def assemble_tet_mass(
    tets: np.ndarray,
    volumes: np.ndarray,
    n_vertices: int,
) -> sparse.csr_matrix:
    """사면체 일치 질량 행렬 조립.

    요소 질량 = (부피 / 20) × 12x12 템플릿 (단위 밀도).
    """
    template = tet_mass_template()
    blocks = (volumes / 20.0)[:, None, None] * template
    return assemble_matrix(element_dofs(tets), blocks, 3 * n_vertices)


def assemble_particle_mass(n_vertices: int, mass: float) -> sparse.csr_matrix:
    """입자 질량 행렬 M = m·I (3n x 3n)."""
    return sparse.identity(3 * n_vertices, format="csr") * mass
