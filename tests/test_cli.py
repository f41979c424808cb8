"""Tests for the transcription CLI and CSV export."""

import argparse
import csv
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from PIL import Image

from src.cli import (
    _add_settings_arguments,
    _find_images,
    _print_summary,
    _write_csv,
    build_configs,
    main,
    process_folder,
    transcribe_file,
)
from src.ocr.document_processor import Transcription
from src.preprocessing.raster import from_array
from src.utils.config import (
    SUPPORTED_LANGUAGES,
    AppConfig,
    BinarizeMode,
    ChannelMode,
)
from src.utils.errors import RecognitionError


def _make_test_image(path: Path) -> None:
    """Create a minimal test PNG image at the given path."""
    img = Image.fromarray(np.full((100, 200, 3), 255, dtype=np.uint8))
    img.save(path, format="PNG")


def _make_args(**overrides: object) -> argparse.Namespace:
    """Namespace with every settings flag unset."""
    values: dict[str, object] = {
        "preset": None,
        "crop": None,
        "binarize": None,
        "channel": None,
        "invert": False,
        "skew": None,
        "lang": None,
        "psm": None,
        "strips": None,
        "no_strips": False,
        "overlap": None,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


def _mock_processor(text: str = "Anno de 1750\n") -> MagicMock:
    processor = MagicMock()
    processor.load_image.return_value = from_array(
        np.full((100, 200), 255, dtype=np.uint8)
    )
    processor.transcribe.return_value = Transcription(text=text)
    processor.preview.return_value = from_array(np.zeros((10, 10), dtype=np.uint8))
    return processor


class TestFindImages:
    """Tests for page image discovery."""

    def test_find_png_files(self, tmp_path: Path) -> None:
        (tmp_path / "page1.png").touch()
        (tmp_path / "page2.png").touch()
        (tmp_path / "readme.txt").touch()
        files = _find_images(tmp_path)
        assert len(files) == 2
        assert all(f.suffix == ".png" for f in files)

    def test_find_mixed_extensions(self, tmp_path: Path) -> None:
        (tmp_path / "a.png").touch()
        (tmp_path / "b.jpg").touch()
        (tmp_path / "c.webp").touch()
        (tmp_path / "d.tiff").touch()
        (tmp_path / "e.pdf").touch()
        files = _find_images(tmp_path)
        assert [f.name for f in files] == ["a.png", "b.jpg", "c.webp", "d.tiff"]

    def test_find_no_images(self, tmp_path: Path) -> None:
        (tmp_path / "readme.txt").touch()
        assert _find_images(tmp_path) == []

    def test_find_uppercase_extensions(self, tmp_path: Path) -> None:
        (tmp_path / "PAGE.PNG").touch()
        assert len(_find_images(tmp_path)) == 1


class TestWriteCsv:
    """Tests for CSV writing."""

    def test_write_csv_content(self, tmp_path: Path) -> None:
        results = [
            {
                "filename": "page.png",
                "status": "success",
                "width": 200,
                "height": 100,
                "processing_time_s": 0.5,
                "text": "linha um\nlinha dois\n",
                "error": None,
            },
            {"filename": "bad.png", "status": "failed", "error": "boom"},
        ]
        output = tmp_path / "out" / "results.csv"
        _write_csv(results, output)

        with open(output, encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert rows[0]["text"] == "linha um\nlinha dois\n"
        assert rows[0]["width"] == "200"
        assert rows[1]["status"] == "failed"
        assert rows[1]["text"] == ""
        assert rows[1]["error"] == "boom"

    def test_write_csv_empty(self, tmp_path: Path) -> None:
        output = tmp_path / "empty.csv"
        _write_csv([], output)
        assert not output.exists()


class TestPrintSummary:
    """Tests for the batch summary output."""

    def test_print_summary(self, capsys: pytest.CaptureFixture) -> None:
        _print_summary({"total": 3, "successful": 2, "failed": 1}, Path("r.csv"))
        captured = capsys.readouterr().out
        assert "Batch Transcription Complete" in captured
        assert "Successful: 2" in captured
        assert "Failed:     1" in captured


class TestBuildConfigs:
    """Tests for combining presets, config and flags."""

    def test_defaults_come_from_config(self) -> None:
        app_config = AppConfig()
        preprocess, recognition = build_configs(_make_args(), app_config)
        assert preprocess == app_config.preprocessing
        assert recognition == app_config.recognition

    def test_typed_preset(self) -> None:
        preprocess, recognition = build_configs(
            _make_args(preset="typed"), AppConfig()
        )
        assert preprocess.binarize is BinarizeMode.OTSU
        assert preprocess.crop.top == 0
        assert recognition.page_seg_mode == 6
        assert recognition.strip_mode is False

    def test_flag_overrides(self) -> None:
        args = _make_args(
            crop=[10.0, 5.0, 2.0, 1.0],
            binarize="otsu",
            channel="g",
            invert=True,
            skew=-1.5,
            lang="lat",
            psm=4,
            overlap=0.1,
        )
        preprocess, recognition = build_configs(args, AppConfig())
        assert (preprocess.crop.top, preprocess.crop.right) == (10.0, 1.0)
        assert preprocess.binarize is BinarizeMode.OTSU
        assert preprocess.channel is ChannelMode.GREEN
        assert preprocess.invert is True
        assert preprocess.skew_degrees == -1.5
        assert recognition.language == "lat"
        assert recognition.page_seg_mode == 4
        assert recognition.overlap_fraction == 0.1

    def test_strip_flags(self) -> None:
        _, recognition = build_configs(
            _make_args(preset="typed", strips=5), AppConfig()
        )
        assert recognition.strip_mode is True
        assert recognition.strip_count == 5

        _, recognition = build_configs(_make_args(no_strips=True), AppConfig())
        assert recognition.strip_mode is False


class TestTranscribeFile:
    """Tests for single-file transcription."""

    def test_row_contents(self, tmp_path: Path) -> None:
        processor = _mock_processor("texto\n")
        preprocess, recognition = AppConfig().preprocessing, AppConfig().recognition
        row = transcribe_file(tmp_path / "p.png", processor, preprocess, recognition)
        assert row["filename"] == "p.png"
        assert row["status"] == "success"
        assert (row["width"], row["height"]) == (200, 100)
        assert row["text"] == "texto\n"
        assert row["error"] is None
        processor.transcribe.assert_called_once()
        assert processor.transcribe.call_args.kwargs["on_progress"] is None

    def test_verbose_reports_progress(self, tmp_path: Path) -> None:
        processor = _mock_processor()
        config = AppConfig()
        transcribe_file(
            tmp_path / "p.png",
            processor,
            config.preprocessing,
            config.recognition,
            verbose=True,
        )
        assert processor.transcribe.call_args.kwargs["on_progress"] is not None


class TestProcessFolder:
    """Tests for batch transcription of a folder."""

    @patch("src.cli.DocumentProcessor")
    def test_process_folder(self, mock_cls: MagicMock, tmp_path: Path) -> None:
        _make_test_image(tmp_path / "a.png")
        _make_test_image(tmp_path / "b.png")
        processor = _mock_processor()
        processor.transcribe.side_effect = [
            Transcription(text="first\n"),
            RecognitionError("strip failed", strip_index=3),
        ]
        mock_cls.return_value = processor

        config = AppConfig()
        output = tmp_path / "results.csv"
        summary = process_folder(
            tmp_path, output, config, config.preprocessing, config.recognition
        )

        assert summary == {"total": 2, "successful": 1, "failed": 1}
        with open(output, encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert [r["filename"] for r in rows] == ["a.png", "b.png"]
        assert rows[0]["text"] == "first\n"
        assert rows[1]["status"] == "failed"
        assert "strip failed" in rows[1]["error"]

    @patch("src.cli.DocumentProcessor")
    def test_empty_folder(self, mock_cls: MagicMock, tmp_path: Path) -> None:
        config = AppConfig()
        output = tmp_path / "results.csv"
        summary = process_folder(
            tmp_path, output, config, config.preprocessing, config.recognition
        )
        assert summary == {"total": 0, "successful": 0, "failed": 0}
        assert not output.exists()


class TestSettingsArguments:
    """Tests for the shared settings flags."""

    def test_lang_help_lists_supported_languages(self) -> None:
        parser = argparse.ArgumentParser()
        _add_settings_arguments(parser)
        help_text = parser._option_string_actions["--lang"].help
        for code, name in SUPPORTED_LANGUAGES.items():
            assert f"{code}: {name}" in help_text


@patch("src.cli.setup_logging")
@patch("src.cli.load_config", return_value=AppConfig())
class TestMain:
    """Tests for argument handling in main."""

    def test_no_command_prints_help(
        self, _load: MagicMock, _logging: MagicMock
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0

    @patch("src.cli.DocumentProcessor")
    def test_transcribe_prints_text(
        self,
        mock_cls: MagicMock,
        _load: MagicMock,
        _logging: MagicMock,
        tmp_path: Path,
        capsys: pytest.CaptureFixture,
    ) -> None:
        page = tmp_path / "page.png"
        _make_test_image(page)
        mock_cls.return_value = _mock_processor("linha\n")

        main(["transcribe", str(page), "--preset", "typed"])

        assert capsys.readouterr().out == "linha\n"
        _, preprocess, recognition = mock_cls.return_value.transcribe.call_args.args
        assert preprocess.binarize is BinarizeMode.OTSU
        assert recognition.strip_mode is False

    @patch("src.cli.DocumentProcessor")
    def test_transcribe_writes_output(
        self,
        mock_cls: MagicMock,
        _load: MagicMock,
        _logging: MagicMock,
        tmp_path: Path,
    ) -> None:
        page = tmp_path / "page.png"
        _make_test_image(page)
        mock_cls.return_value = _mock_processor("um\ndois\n")
        output = tmp_path / "out" / "page.txt"

        main(["transcribe", str(page), "-o", str(output)])

        assert output.read_text(encoding="utf-8") == "um\ndois\n"

    @patch("src.cli.DocumentProcessor")
    def test_transcribe_failure_exits(
        self,
        mock_cls: MagicMock,
        _load: MagicMock,
        _logging: MagicMock,
        tmp_path: Path,
        capsys: pytest.CaptureFixture,
    ) -> None:
        page = tmp_path / "page.png"
        _make_test_image(page)
        processor = _mock_processor()
        processor.transcribe.side_effect = RecognitionError("no language data")
        mock_cls.return_value = processor

        with pytest.raises(SystemExit) as exc_info:
            main(["transcribe", str(page)])
        assert exc_info.value.code == 1
        assert "no language data" in capsys.readouterr().err

    def test_missing_file_exits(
        self, _load: MagicMock, _logging: MagicMock, tmp_path: Path
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["transcribe", str(tmp_path / "missing.png")])
        assert exc_info.value.code == 1

    def test_invalid_setting_is_usage_error(
        self, _load: MagicMock, _logging: MagicMock, tmp_path: Path
    ) -> None:
        page = tmp_path / "page.png"
        _make_test_image(page)
        with pytest.raises(SystemExit) as exc_info:
            main(["transcribe", str(page), "--psm", "42"])
        assert exc_info.value.code == 2

    @patch("src.cli.DocumentProcessor")
    def test_preview_writes_png(
        self,
        mock_cls: MagicMock,
        _load: MagicMock,
        _logging: MagicMock,
        tmp_path: Path,
    ) -> None:
        page = tmp_path / "page.png"
        _make_test_image(page)
        mock_cls.return_value = _mock_processor()
        output = tmp_path / "preview.png"

        main(["preview", str(page), "-o", str(output), "--binarize", "otsu"])

        with Image.open(output) as img:
            assert img.size == (10, 10)
        _, preprocess = mock_cls.return_value.preview.call_args.args
        assert preprocess.binarize is BinarizeMode.OTSU

    def test_batch_requires_directory(
        self, _load: MagicMock, _logging: MagicMock, tmp_path: Path
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["batch", str(tmp_path / "nope")])
        assert exc_info.value.code == 1

    @patch("src.cli.process_folder")
    def test_batch_dispatch(
        self,
        mock_process: MagicMock,
        _load: MagicMock,
        _logging: MagicMock,
        tmp_path: Path,
    ) -> None:
        output = tmp_path / "out.csv"
        main(["batch", str(tmp_path), "-o", str(output), "--lang", "lat"])
        args = mock_process.call_args.args
        assert args[0] == tmp_path
        assert args[1] == output
        assert args[4].language == "lat"
