import pytest
import torch

from chunkmesh import (
    AttributedBuffer,
    ChunkArena,
    ChunkBuilder,
    ChunkingPhaseError,
    NUM_DUPLICATES_KEY,
)

from conftest import make_attributed, make_grid_mesh


def _strip_builders(mesh, arena):
    a = ChunkBuilder(mesh, arena)
    b = ChunkBuilder(mesh, arena)
    a.add_face(0)
    b.add_face(1)
    arena.seal()
    return a, b


def _full_source(mesh):
    nv, nf = mesh.num_vertices, mesh.num_faces
    return make_attributed(
        mesh,
        vertex_colors=torch.arange(nv * 3).to(torch.uint8).reshape(nv, 3),
        vertex_normals=torch.arange(nv * 3, dtype=torch.float32).reshape(nv, 3),
        face_colors=torch.arange(nf * 4).to(torch.uint8).reshape(nf, 4),
        face_normals=-torch.arange(nf * 3, dtype=torch.float32).reshape(nf, 3),
    )


def test_strip_scenario_layout(strip_mesh, strip_arena):
    a, b = _strip_builders(strip_mesh, strip_arena)
    source = make_attributed(strip_mesh)

    chunk_a = a.build_mesh(source)
    chunk_b = b.build_mesh(source)

    assert a.local_vertex_order() == [1, 2, 0]
    assert b.local_vertex_order() == [1, 2, 3]
    assert torch.equal(chunk_a.vertices, strip_mesh.vertices[[1, 2, 0]])
    assert torch.equal(chunk_b.vertices, strip_mesh.vertices[[1, 2, 3]])
    assert chunk_a.face_indices.tolist() == [[2, 0, 1]]
    assert chunk_b.face_indices.tolist() == [[0, 1, 2]]
    assert chunk_a.atomics[NUM_DUPLICATES_KEY] == 2
    assert chunk_b.num_duplicates == 2


def test_output_sizes(strip_mesh, strip_arena):
    a, _ = _strip_builders(strip_mesh, strip_arena)
    chunk = a.build_mesh(make_attributed(strip_mesh))

    assert chunk.num_vertices == a.num_vertices()
    assert chunk.face_indices.numel() == 3 * a.num_faces()


def test_local_faces_reproduce_global_geometry():
    mesh = make_grid_mesh(4)
    arena = ChunkArena(mesh)
    builders = [ChunkBuilder(mesh, arena) for _ in range(3)]
    for face in range(mesh.num_faces):
        builders[face % 3].add_face(face)
    arena.seal()
    source = make_attributed(mesh)

    for builder in builders:
        chunk = builder.build_mesh(source)
        faces = torch.tensor(builder.faces)
        assert torch.equal(chunk.vertices[chunk.face_indices], mesh.vertices[mesh.faces[faces]])

        local = chunk.face_indices.flatten().unique()
        assert local.tolist() == list(range(builder.num_vertices()))


def test_duplicates_come_first(fan_mesh):
    arena = ChunkArena(fan_mesh)
    a, b, c = (ChunkBuilder(fan_mesh, arena) for _ in range(3))
    a.add_face(0)
    b.add_face(1)
    c.add_face(2)
    c.add_face(3)
    arena.seal()
    source = make_attributed(fan_mesh)

    for builder in (a, b, c):
        chunk = builder.build_mesh(source)
        dups = builder.duplicate_vertices
        assert builder.local_vertex_order()[:len(dups)] == dups
        assert torch.equal(chunk.vertices[:len(dups)], fan_mesh.vertices[dups])
        assert chunk.num_duplicates == len(dups)


def test_channel_presence_propagates(strip_mesh, strip_arena):
    a, _ = _strip_builders(strip_mesh, strip_arena)

    bare = a.build_mesh(make_attributed(strip_mesh))
    assert bare.vertex_colors is None
    assert bare.vertex_normals is None
    assert bare.face_colors is None
    assert bare.face_normals is None

    nv = strip_mesh.num_vertices
    partial = a.build_mesh(
        make_attributed(strip_mesh, vertex_normals=torch.ones(nv, 3))
    )
    assert partial.vertex_normals is not None
    assert partial.vertex_colors is None
    assert partial.channels == make_attributed(strip_mesh, vertex_normals=torch.ones(nv, 3)).channels

    full_source = _full_source(strip_mesh)
    full = a.build_mesh(full_source)
    assert full.channels == full_source.channels


def test_channels_copied_by_local_order(strip_mesh, strip_arena):
    a, b = _strip_builders(strip_mesh, strip_arena)
    source = _full_source(strip_mesh)

    chunk = b.build_mesh(source)

    assert torch.equal(chunk.vertex_colors, source.vertex_colors[[1, 2, 3]])
    assert torch.equal(chunk.vertex_normals, source.vertex_normals[[1, 2, 3]])
    assert torch.equal(chunk.face_colors, source.face_colors[[1]])
    assert chunk.face_colors.shape == (1, 4)
    assert torch.equal(chunk.face_normals, source.face_normals[[1]])


def test_remap_with_identity_fallback(strip_mesh, strip_arena):
    _, b = _strip_builders(strip_mesh, strip_arena)
    # attribute storage has an extra row; vertex 3 and face 1 were moved
    colors = torch.tensor(
        [[0, 0, 0], [10, 10, 10], [20, 20, 20], [30, 30, 30], [99, 99, 99]], dtype=torch.uint8
    )
    face_normals = torch.tensor([[0.0, 0.0, 1.0], [0.0, 0.0, -1.0], [1.0, 0.0, 0.0]])
    source = AttributedBuffer(
        vertices=torch.zeros(5, 3),
        face_indices=torch.tensor([[0, 1, 2], [1, 2, 3], [2, 3, 4]]),
        vertex_colors=colors,
        face_normals=face_normals,
    )

    chunk = b.build_mesh(source, vertex_remap={3: 4}, face_remap={1: 2})

    assert chunk.vertex_colors.tolist() == [[10, 10, 10], [20, 20, 20], [99, 99, 99]]
    assert chunk.face_normals.tolist() == [[1.0, 0.0, 0.0]]
    # positions always come from the mesh, not the source buffer
    assert torch.equal(chunk.vertices, strip_mesh.vertices[[1, 2, 3]])


def test_output_does_not_alias_inputs(strip_mesh, strip_arena):
    a, _ = _strip_builders(strip_mesh, strip_arena)
    source = _full_source(strip_mesh)
    mesh_vertices = strip_mesh.vertices.clone()
    source_colors = source.vertex_colors.clone()

    chunk = a.build_mesh(source)
    chunk.vertices.add_(100.0)
    chunk.vertex_colors.fill_(7)

    assert torch.equal(strip_mesh.vertices, mesh_vertices)
    assert torch.equal(source.vertex_colors, source_colors)


def test_build_requires_sealed_arena(strip_mesh, strip_arena):
    a = ChunkBuilder(strip_mesh, strip_arena)
    a.add_face(0)

    with pytest.raises(ChunkingPhaseError):
        a.build_mesh(make_attributed(strip_mesh))


def test_build_after_registry_release(strip_mesh):
    arena = ChunkArena(strip_mesh)
    a = ChunkBuilder(strip_mesh, arena)
    b = ChunkBuilder(strip_mesh, arena)
    a.add_face(0)
    b.add_face(1)
    arena.seal(release_registry=True)

    chunk = a.build_mesh(make_attributed(strip_mesh))

    assert chunk.num_duplicates == 2
    assert a.built
    assert not b.built


def test_empty_builder(strip_mesh, strip_arena):
    builder = ChunkBuilder(strip_mesh, strip_arena)
    strip_arena.seal()

    chunk = builder.build_mesh(_full_source(strip_mesh))

    assert chunk.vertices.shape == (0, 3)
    assert chunk.face_indices.shape == (0, 3)
    assert chunk.vertex_colors.shape == (0, 3)
    assert chunk.num_duplicates == 0
