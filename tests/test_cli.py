import json

import pytest

from gltf_export.cli import build_parser, main

SCENE = {
    "name": "Cli",
    "meshes": {"box": {"primitive": "cube"}},
    "materials": {"m": {"baseColor": [0.2, 0.2, 0.2, 1]}},
    "objects": [
        {"name": "Box", "mesh": "box", "materials": ["m"]},
        {"name": "Hidden", "mesh": "box", "layer": 4},
        {"name": "Off", "active": False},
    ],
}


@pytest.fixture
def scene_file(tmp_path):
    path = tmp_path / "scene.json"
    path.write_text(json.dumps(SCENE))
    return path


def test_export_and_validate(tmp_path, scene_file, capsys):
    output = tmp_path / "out.glb"

    assert main(["export", str(scene_file), str(output)]) == 0
    assert "SUCCESS" in capsys.readouterr().out

    assert main(["validate", str(output)]) == 0
    assert "VALID" in capsys.readouterr().out


def test_export_json_report(tmp_path, scene_file, capsys):
    output = tmp_path / "out.gltf"

    code = main(["export", str(scene_file), str(output), "--json", "--layer-mask", "0x1",
                 "--include-inactive", "--indent", "2", "--time-budget-ms", "1"])

    assert code == 0
    report = json.loads(capsys.readouterr().out)
    # Hidden is on layer 4, Off is kept as an empty node
    assert report["stats"]["nodes"] == 2
    assert report["stats"]["meshes"] == 1
    assert (tmp_path / "out.bin").exists()
    assert output.read_text().startswith("{\n")


def test_export_default_material(tmp_path, capsys):
    scene = {"meshes": {"box": {"primitive": "cube"}}, "objects": [{"mesh": "box"}]}
    scene_file = tmp_path / "bare.json"
    scene_file.write_text(json.dumps(scene))

    assert main(["export", str(scene_file), str(tmp_path / "o.glb"), "--json", "--default-material"]) == 0
    assert json.loads(capsys.readouterr().out)["stats"]["materials"] == 1


def test_export_missing_scene(tmp_path):
    assert main(["export", str(tmp_path / "none.json"), str(tmp_path / "o.glb")]) == 2


def test_validate_json_and_strict(tmp_path, capsys):
    path = tmp_path / "empty.gltf"
    path.write_text(json.dumps({"asset": {"version": "2.0"}}))

    assert main(["validate", str(path), "--json"]) == 0
    assert json.loads(capsys.readouterr().out)["warning_count"] == 1
    assert main(["validate", str(path), "--strict"]) == 1


def test_validate_missing_file(tmp_path, capsys):
    assert main(["validate", str(tmp_path / "missing.glb")]) == 1
    assert "INVALID" in capsys.readouterr().out


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
