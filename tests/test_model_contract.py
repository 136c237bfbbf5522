import numpy as np
import pytest

from livepose.data.preprocessing import NormalizationMode
from livepose.errors import InferenceUnavailable, ModelConfigurationError
from livepose.models.base_model import (
    DecodeStrategy, TensorSpec, get_model_spec, validate_engine
)
from livepose.models.engines import OnnxEngine, TorchScriptEngine, create_engine

from conftest import FakeEngine, regression_output


def test_variant_contracts():
    lightning = get_model_spec('movenet_lightning')
    assert lightning.input_shape == (192, 192, 3)
    assert lightning.normalization is NormalizationMode.FLOAT32
    assert lightning.grid_shape is None
    
    thunder = get_model_spec('MOVENET_THUNDER')
    assert thunder.input_shape == (256, 256, 3)
    assert thunder.normalization is NormalizationMode.UINT8
    
    posenet = get_model_spec('posenet')
    assert posenet.strategy is DecodeStrategy.HEATMAP_OFFSET
    assert posenet.grid_shape == (9, 9)


def test_unknown_variant():
    with pytest.raises(ValueError):
        get_model_spec('blazepose')


def test_tensor_spec_matching():
    assert TensorSpec((None, 192, 192, 3)).matches(TensorSpec((1, 192, 192, 3)))
    assert not TensorSpec((1, 192, 192, 3)).matches(TensorSpec((1, 256, 256, 3)))
    assert not TensorSpec((1, 17, 3), 'float32').matches(TensorSpec((1, 17, 3), 'uint8'))
    assert not TensorSpec((17, 3)).matches(TensorSpec((1, 17, 3)))


def test_matching_engine_passes_after_dry_run():
    engine = FakeEngine(
        [regression_output()],
        inputs_declared=[TensorSpec((None, 192, 192, 3))],
        outputs_declared=[TensorSpec((None, 17, 3))]
    )
    
    validate_engine(engine, get_model_spec('movenet_lightning'))
    
    assert engine.received[0].shape == (1, 192, 192, 3)
    assert engine.received[0].dtype == np.float32


def test_declared_input_mismatch_raises():
    engine = FakeEngine(
        [regression_output()],
        inputs_declared=[TensorSpec((1, 256, 256, 3), 'uint8')]
    )
    with pytest.raises(ModelConfigurationError):
        validate_engine(engine, get_model_spec('movenet_lightning'))
    assert engine.received == []


def test_observed_output_mismatch_raises():
    engine = FakeEngine([np.zeros((1, 17, 2), dtype=np.float32)])
    with pytest.raises(ModelConfigurationError):
        validate_engine(engine, get_model_spec('movenet_lightning'))


def test_missing_heatmap_output_raises():
    engine = FakeEngine([np.zeros((1, 9, 9, 17), dtype=np.float32)])
    with pytest.raises(ModelConfigurationError):
        validate_engine(engine, get_model_spec('posenet'))


def test_dry_run_can_be_skipped():
    engine = FakeEngine([np.zeros(3, dtype=np.float32)])
    validate_engine(engine, get_model_spec('movenet_lightning'), dry_run=False)
    assert engine.received == []


def test_missing_model_files_are_unavailable(tmp_path):
    missing = str(tmp_path / 'missing.onnx')
    with pytest.raises(InferenceUnavailable):
        OnnxEngine(missing)
    with pytest.raises(InferenceUnavailable):
        TorchScriptEngine(missing)


def test_unknown_engine_type():
    with pytest.raises(ValueError):
        create_engine('tflite', 'model.tflite')


def test_failing_dry_run_is_a_configuration_error():
    engine = FakeEngine([regression_output()], error=RuntimeError('shape [1,3,192,192] expected'))
    with pytest.raises(ModelConfigurationError) as excinfo:
        validate_engine(engine, get_model_spec('movenet_lightning'))
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_dry_run_keeps_pipeline_errors():
    engine = FakeEngine([regression_output()], error=InferenceUnavailable('closed'))
    with pytest.raises(InferenceUnavailable):
        validate_engine(engine, get_model_spec('movenet_lightning'))
