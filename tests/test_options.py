"""Tests for merge options and policy configuration."""

import datetime as _datetime
import logging as _logging
import unittest.mock as _mock

import pytest as _pytest

import mergeable
import mergeable.options as options
import tests.records as records


class TestBuildConfig:
    """Tests for assembling a MergeConfig from options."""

    def test_defaults(self) -> None:
        config = options.build_config()

        assert config.overwrite is False
        assert config.append_sequences is False
        assert config.type_check is False
        assert config.overwrite_with_empty_value is False
        assert config.overwrite_empty_sequence_with_empty_value is False
        assert config.sequence_deep_copy is False
        assert config.transformers is None
        assert config.environment_prefix == "MSVC_"
        assert config.environment_overlay is True
        assert config.registry is mergeable.default_registry
        assert config.debug is False

    @_pytest.mark.parametrize(
        ("option", "flag"),
        [
            (mergeable.with_override, "overwrite"),
            (mergeable.with_append_sequence, "append_sequences"),
            (mergeable.with_type_check, "type_check"),
            (mergeable.with_override_empty_sequence, "overwrite_empty_sequence_with_empty_value"),
            (mergeable.with_debug, "debug"),
        ],
    )
    def test_single_flag_options(self, option: mergeable.Option, flag: str) -> None:
        config = options.build_config(option)

        assert getattr(config, flag) is True

    def test_empty_value_overwrite_implies_overwrite(self) -> None:
        config = options.build_config(mergeable.with_overwrite_with_empty_value)

        assert config.overwrite is True
        assert config.overwrite_with_empty_value is True

    def test_deep_copy_implies_overwrite(self) -> None:
        config = options.build_config(mergeable.with_sequence_deep_copy)

        assert config.overwrite is True
        assert config.sequence_deep_copy is True

    def test_later_options_win(self) -> None:
        config = options.build_config(
            mergeable.with_environment({"A": "1"}),
            mergeable.with_environment({}),
            mergeable.with_environment_prefix("X_"),
            mergeable.with_environment_prefix("Y_"),
        )

        assert config.environment == {}
        assert config.environ == {}
        assert config.environment_prefix == "Y_"

    def test_environ_defaults_to_process_environment(
        self, monkeypatch: _pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("MSVC_marker", "1")

        assert options.build_config().environ["MSVC_marker"] == "1"

    def test_each_call_gets_a_fresh_config(self) -> None:
        first = options.build_config(mergeable.with_override)
        second = options.build_config()

        assert first is not second
        assert second.overwrite is False


class TestAmbientSettings:
    """Tests for defaults read from MERGEABLE_* variables."""

    def test_prefix_from_settings(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MERGEABLE_ENVIRONMENT_PREFIX", "APP_")
        monkeypatch.setenv("APP_count", "5")
        dst = records.ScalarConfig()

        mergeable.merge(dst, records.ScalarConfig())

        assert dst.count == 5

    def test_overlay_disabled_by_settings(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MERGEABLE_ENVIRONMENT_OVERLAY", "false")
        monkeypatch.setenv("MSVC_count", "5")
        dst = records.ScalarConfig()

        mergeable.merge(dst, records.ScalarConfig(count=2))

        assert dst.count == 2

    def test_options_beat_settings(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MERGEABLE_ENVIRONMENT_PREFIX", "APP_")

        config = options.build_config(mergeable.with_environment_prefix("OTHER_"))

        assert config.environment_prefix == "OTHER_"

    def test_debug_from_settings(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MERGEABLE_DEBUG", "true")

        assert options.build_config().debug is True


class TestEnvironmentOptions:
    """Tests for with_environment, with_environment_prefix and without_environment."""

    def test_explicit_environment_replaces_process_environment(
        self, monkeypatch: _pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("MSVC_count", "1")
        dst = records.ScalarConfig()

        mergeable.merge(dst, records.ScalarConfig(), mergeable.with_environment({"MSVC_name": "n"}))

        assert dst.name == "n"
        assert dst.count == 0

    def test_custom_prefix(self) -> None:
        dst = records.ScalarConfig()
        environ = {"APP_name": "n", "MSVC_count": "3"}

        mergeable.merge(
            dst,
            records.ScalarConfig(),
            mergeable.with_environment(environ),
            mergeable.with_environment_prefix("APP_"),
        )

        assert dst.name == "n"
        assert dst.count == 0

    def test_without_environment(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OTC_name", "goober!")
        dst = records.OvrTestConfig(name="base")

        mergeable.merge(dst, records.OvrTestConfig(name="src"), mergeable.without_environment)

        assert dst.name == "base"


class TestFieldRegistryOption:
    def test_merge_populates_given_registry(self, registry: mergeable.FieldRegistry) -> None:
        dst = records.Service()

        mergeable.merge(
            dst,
            records.Service(endpoint=records.Endpoint("h", 1)),
            mergeable.with_field_registry(registry),
        )

        assert records.Service in registry
        assert records.Endpoint in registry
        assert dst.endpoint.host == "h"

    def test_preregistered_types(self, registry: mergeable.FieldRegistry) -> None:
        registry.register(records.Endpoint, records.Service)

        assert len(registry) == 2


class TestTransformers:
    """Tests for custom merge functions."""

    def test_transformer_replaces_default_handling(self) -> None:
        earlier = _datetime.datetime(2024, 1, 1)
        later = _datetime.datetime(2024, 6, 1)
        transformers = mergeable.TypeTransformers({_datetime.datetime: max})
        dst = records.Schedule(start=earlier)

        mergeable.merge(dst, records.Schedule(start=later), mergeable.with_transformers(transformers))

        assert dst.start == later

    def test_transformer_skipped_for_empty_dst(self) -> None:
        start = _datetime.datetime(2024, 1, 1)
        fn = _mock.Mock(side_effect=max)
        transformers = mergeable.TypeTransformers({_datetime.datetime: fn})
        dst = records.Schedule()

        mergeable.merge(dst, records.Schedule(start=start), mergeable.with_transformers(transformers))

        fn.assert_not_called()
        assert dst.start == start

    def test_transformer_receives_dst_and_src(self) -> None:
        fn = _mock.Mock(return_value=records.Endpoint("t", 7))
        transformers = mergeable.TypeTransformers({records.Endpoint: fn})
        dst = records.Service(endpoint=records.Endpoint("h", 1))
        src = records.Service(endpoint=records.Endpoint("x", 2))
        original = dst.endpoint

        mergeable.merge(dst, src, mergeable.with_transformers(transformers))

        fn.assert_called_once_with(original, src.endpoint)
        assert dst.endpoint == records.Endpoint("t", 7)

    def test_protocol(self) -> None:
        assert isinstance(mergeable.TypeTransformers({}), mergeable.Transformers)


class TestDebugLogging:
    def test_with_debug_traces_decisions(self, caplog: _pytest.LogCaptureFixture) -> None:
        caplog.set_level(_logging.DEBUG, logger="mergeable.traversal")
        dst = records.ScalarConfig()

        mergeable.merge(dst, records.ScalarConfig(name="n"), mergeable.with_debug)

        messages = [r.getMessage() for r in caplog.records if r.name == "mergeable.traversal"]
        assert any("Merging ScalarConfig" in m for m in messages)
        assert any("record ScalarConfig" in m for m in messages)

    def test_silent_without_debug(self, caplog: _pytest.LogCaptureFixture) -> None:
        caplog.set_level(_logging.DEBUG, logger="mergeable.traversal")

        mergeable.merge(records.ScalarConfig(), records.ScalarConfig(name="n"))

        assert not [r for r in caplog.records if r.name == "mergeable.traversal"]


class TestMergeWithOverwrite:
    def test_deprecated_alias(self) -> None:
        dst = records.ScalarConfig(name="a")

        with _pytest.warns(DeprecationWarning, match="merge_with_overwrite"):
            mergeable.merge_with_overwrite(dst, records.ScalarConfig(name="b"))

        assert dst.name == "b"
