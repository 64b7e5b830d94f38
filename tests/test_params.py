from __future__ import annotations

import pytest

from raster_service.conversion import (
    ConversionConfig,
    InvalidParameter,
    Layout,
    OutputFormat,
    resolve_config,
)


def test_defaults_when_no_parameters() -> None:
    config = resolve_config({})

    assert config == ConversionConfig(
        density=300.0, quality=85, format=OutputFormat.JPEG, layout=Layout.KEEP
    )


def test_empty_and_none_values_fall_back_to_defaults() -> None:
    config = resolve_config({"density": "", "quality": None, "format": "", "layout": None})

    assert config == ConversionConfig()


@pytest.mark.parametrize("raw", ["300", "72.5", "1e2", "0.25", "-5", "0"])
def test_density_accepts_any_float(raw: str) -> None:
    assert resolve_config({"density": raw}).density == float(raw)


@pytest.mark.parametrize("raw", ["1e400", "inf", "-inf", "nan", "Infinity"])
def test_density_rejects_non_finite(raw: str) -> None:
    with pytest.raises(InvalidParameter) as excinfo:
        resolve_config({"density": raw})

    assert excinfo.value.field == "density"
    assert excinfo.value.message == "invalid density"


@pytest.mark.parametrize("raw", ["abc", "300dpi", "1,5", "--1"])
def test_density_rejects_non_numeric(raw: str) -> None:
    with pytest.raises(InvalidParameter) as excinfo:
        resolve_config({"density": raw})

    assert excinfo.value.field == "density"
    assert excinfo.value.message == "invalid density"
    assert excinfo.value.status_code == 400


@pytest.mark.parametrize("raw, expected", [("0", 0), ("85", 85), ("100", 100), ("250", 250)])
def test_quality_parses_unsigned_integers(raw: str, expected: int) -> None:
    assert resolve_config({"quality": raw}).quality == expected


@pytest.mark.parametrize("raw", ["-1", "+5", "8.5", " 85", "high", "1_000", "²"])
def test_quality_rejects_everything_else(raw: str) -> None:
    with pytest.raises(InvalidParameter) as excinfo:
        resolve_config({"quality": raw})

    assert excinfo.value.field == "quality"
    assert excinfo.value.message == "invalid compression quality"


@pytest.mark.parametrize(
    "raw, fmt, extension",
    [
        ("jpeg", OutputFormat.JPEG, "jpg"),
        ("JPEG", OutputFormat.JPEG, "jpg"),
        ("Png", OutputFormat.PNG, "png"),
        ("tiff", OutputFormat.TIFF, "tiff"),
        ("TiFf", OutputFormat.TIFF, "tiff"),
    ],
)
def test_format_is_case_insensitive(raw: str, fmt: OutputFormat, extension: str) -> None:
    config = resolve_config({"format": raw})

    assert config.format is fmt
    assert config.format.extension == extension


@pytest.mark.parametrize("raw", ["bogus", "jpg", "tif", "gif"])
def test_format_rejects_unknown_values(raw: str) -> None:
    with pytest.raises(InvalidParameter) as excinfo:
        resolve_config({"format": raw})

    assert excinfo.value.field == "format"
    assert excinfo.value.message == "invalid output format"


@pytest.mark.parametrize(
    "raw, layout",
    [("landscape", Layout.LANDSCAPE), ("Portrait", Layout.PORTRAIT), ("KEEP", Layout.KEEP)],
)
def test_layout_is_case_insensitive(raw: str, layout: Layout) -> None:
    assert resolve_config({"layout": raw}).layout is layout


def test_layout_rejects_unknown_values() -> None:
    with pytest.raises(InvalidParameter) as excinfo:
        resolve_config({"layout": "sideways"})

    assert excinfo.value.field == "layout"
    assert excinfo.value.message == "invalid output layout"


def test_unknown_keys_are_ignored() -> None:
    assert resolve_config({"colorspace": "cmyk"}) == ConversionConfig()


@pytest.mark.parametrize(
    "fmt, index, name",
    [
        (OutputFormat.JPEG, 0, "0000.jpg"),
        (OutputFormat.PNG, 42, "0042.png"),
        (OutputFormat.TIFF, 9999, "9999.tiff"),
    ],
)
def test_entry_name_pads_index(fmt: OutputFormat, index: int, name: str) -> None:
    assert ConversionConfig(format=fmt).entry_name(index) == name
