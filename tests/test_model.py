import threading

import numpy as np
import pytest

from attrition.errors import MalformedFeatureMatrixError, TrainingCancelledError, TrainingError
from attrition.model import (
    TrainedModel,
    TrainingConfig,
    load_model,
    save_model,
    train_model,
)
from attrition.split import Dataset, split_dataset


@pytest.fixture
def split(separable_dataset):
    return split_dataset(separable_dataset, 0.8, seed=0)


def test_default_config_matches_reference_network():
    config = TrainingConfig()
    assert config.hidden_layers == (32, 16)
    assert config.learning_rate == 0.001
    assert config.epochs == 50
    assert config.activation == "relu"


def test_config_from_mapping():
    config = TrainingConfig.from_mapping({"hidden_layers": [8, 4], "epochs": 3})
    assert config.hidden_layers == (8, 4)
    assert config.to_dict()["hidden_layers"] == [8, 4]
    with pytest.raises(ValueError, match="Unknown training options"):
        TrainingConfig.from_mapping({"optimizer": "sgd"})
    with pytest.raises(ValueError):
        TrainingConfig(epochs=0)


def test_history_has_one_entry_per_epoch(split):
    train, test = split
    model, history = train_model(train, test, TrainingConfig(epochs=7, learning_rate=0.01))

    assert isinstance(model, TrainedModel)
    assert len(history) == 7
    for series in history.as_dict().values():
        assert len(series) == 7
    assert history.loss[-1] < history.loss[0]
    proba = model.predict_proba(test.features)
    assert proba.shape == (len(test),)
    assert np.all((proba >= 0.0) & (proba <= 1.0))
    assert model.feature_names == ["signal", "noise_a", "noise_b"]


def test_observer_receives_every_epoch(split):
    train, test = split
    seen = []
    train_model(train, test, TrainingConfig(epochs=4), observer=seen.append)
    assert [event.epoch for event in seen] == [1, 2, 3, 4]
    assert all(0.0 <= event.val_accuracy <= 1.0 for event in seen)


def test_empty_training_set_fails_fast(separable_dataset):
    empty = separable_dataset.subset([])
    with pytest.raises(MalformedFeatureMatrixError, match="empty"):
        train_model(empty, separable_dataset, TrainingConfig(epochs=1))


def test_mismatched_feature_width_fails_fast(split):
    train, _ = split
    narrow = Dataset(features=np.zeros((4, 2)), labels=np.array([0, 1, 0, 1]))
    with pytest.raises(MalformedFeatureMatrixError, match="features"):
        train_model(train, narrow, TrainingConfig(epochs=1))


def test_non_binary_labels_rejected():
    bad = Dataset(features=np.zeros((4, 2)), labels=np.array([0, 1, 2, 1]))
    with pytest.raises(MalformedFeatureMatrixError, match="binary"):
        train_model(bad, bad, TrainingConfig(epochs=1))


def test_cancellation_between_epochs(split):
    train, test = split
    cancel = threading.Event()

    def stop_after_second(event):
        if event.epoch == 2:
            cancel.set()

    with pytest.raises(TrainingCancelledError) as excinfo:
        train_model(train, test, TrainingConfig(epochs=10), observer=stop_after_second, cancel_event=cancel)
    assert excinfo.value.epoch == 2


def test_observer_failure_surfaces_as_training_error(split):
    train, test = split

    def explode(event):
        raise RuntimeError("observer broke")

    with pytest.raises(TrainingError, match="observer broke"):
        train_model(train, test, TrainingConfig(epochs=2), observer=explode)


def test_predict_rejects_wrong_width(split):
    train, test = split
    model, _ = train_model(train, test, TrainingConfig(epochs=1))
    with pytest.raises(MalformedFeatureMatrixError):
        model.predict_proba(np.zeros((1, 5)))
    assert 0.0 <= model.predict_one([0.2, 0.4, 0.6]) <= 1.0


def test_save_and_load_round_trip(split, tmp_path):
    train, test = split
    model, _ = train_model(train, test, TrainingConfig(epochs=2))
    path = save_model(model, tmp_path / "bundle.joblib")
    restored = load_model(path)
    np.testing.assert_allclose(restored.predict_proba(test.features), model.predict_proba(test.features))
    with pytest.raises(FileNotFoundError):
        load_model(tmp_path / "missing.joblib")
