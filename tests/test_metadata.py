"""Tests for run metadata and voxel document analysis."""

import json

from tile_voxelizer.utils.metadata import MetadataAnalyzer, MetadataWriter, distinct_colors


def voxel(x, color):
    r, g, b, a = color
    return {"x": x, "y": 0, "z": 0, "wx": x + 0.5, "wy": 0.5, "wz": 0.5, "r": r, "g": g, "b": b, "a": a}


def write_document(path, name, colors):
    document = {
        "file": name,
        "resolution": 4,
        "grid_size": {"x": len(colors), "y": 1, "z": 1},
        "voxel_count": len(colors),
        "voxels": [voxel(i, c) for i, c in enumerate(colors)],
    }
    with open(path, "w") as f:
        json.dump(document, f)
    return document


def test_distinct_colors_keeps_first_seen_order(tmp_path):
    red, blue = (255, 0, 0, 255), (0, 0, 255, 255)
    document = write_document(tmp_path / "a_voxels.json", "a", [red, blue, red])

    assert distinct_colors(document) == {red: 2, blue: 1}
    assert list(distinct_colors(document)) == [red, blue]


def test_analyzer_summary(tmp_path):
    red, green = (255, 0, 0, 255), (0, 255, 0, 255)
    write_document(tmp_path / "a_voxels.json", "a", [red, red])
    write_document(tmp_path / "b_voxels.json", "b", [red, green, green])
    (tmp_path / "metadata.json").write_text("{}")

    analyzer = MetadataAnalyzer(tmp_path)
    stats = analyzer.summary_statistics()

    assert stats["num_documents"] == 2
    assert stats["total_voxels"] == 5
    assert stats["distinct_colors"] == 2
    assert stats["assets"]["b"]["distinct_colors"] == 2
    assert analyzer.get_color_frequency() == {red: 3, green: 2}
    assert analyzer.get_color_frequency("a") == {red: 2}


def test_write_run_metadata(tmp_path):
    results = [
        {"file": "a.glb", "output": "a_voxels.json", "voxel_count": 10},
        {"file": "b.glb", "output": "b_voxels.json", "skipped": True},
        {"file": "c.glb", "error": "bad"},
    ]
    path = tmp_path / "meta" / "metadata.json"
    MetadataWriter.write_run_metadata(path, {"resolution": 8, "method": "surface"}, results)

    with open(path) as f:
        metadata = json.load(f)
    assert metadata["num_assets"] == 3
    assert metadata["num_written"] == 1
    assert metadata["num_skipped"] == 1
    assert metadata["num_failed"] == 1
    assert metadata["total_voxels"] == 10
    assert metadata["resolution"] == 8
