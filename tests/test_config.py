import json

import pytest

from livepose.config import GateConfig, OverlayConfig, PipelineConfig, load_config


def test_defaults():
    config = PipelineConfig()
    
    assert config.model_variant == 'movenet_lightning'
    assert config.engine == 'onnx'
    assert config.gate.policy == 'time'
    assert config.gate.interval_ms == 100.0
    assert config.overlay.debug_mode is True
    assert config.overlay.show_labels is True
    assert config.overlay.draw_background is False


def test_from_dict_builds_nested_configs():
    config = PipelineConfig.from_dict({
        'model_variant': 'posenet',
        'resolution': [1280, 720],
        'gate': {'policy': 'count', 'every_n': 3},
        'overlay': {'debug_mode': False},
    })
    
    assert config.resolution == (1280, 720)
    assert config.gate == GateConfig(policy='count', every_n=3)
    assert config.overlay == OverlayConfig(debug_mode=False)


@pytest.mark.parametrize('data', [
    {'model': 'x.onnx'},
    {'gate': {'interval': 10}},
    {'overlay': {'colour': 'red'}},
])
def test_unknown_keys_raise(data):
    with pytest.raises(ValueError):
        PipelineConfig.from_dict(data)


@pytest.mark.parametrize('kwargs', [
    {'policy': 'random'},
    {'interval_ms': -1},
    {'every_n': 0},
])
def test_invalid_gate_settings(kwargs):
    with pytest.raises(ValueError):
        GateConfig(**kwargs)


def test_invalid_engine():
    with pytest.raises(ValueError):
        PipelineConfig(engine='tflite')


def test_load_config_from_json(tmp_path):
    path = tmp_path / 'pipeline.json'
    path.write_text(json.dumps({'model_path': 'movenet.onnx', 'camera_id': 1}))
    
    config = load_config(path)
    
    assert config.model_path == 'movenet.onnx'
    assert config.camera_id == 1


def test_load_config_rejects_non_object(tmp_path):
    path = tmp_path / 'pipeline.json'
    path.write_text('[1, 2]')
    with pytest.raises(ValueError):
        load_config(path)
