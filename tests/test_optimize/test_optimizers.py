"""图片优化器测试"""

import io
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from PIL import Image

from genai_tools.models import OptimizerTool
from genai_tools.optimize.base import NullOptimizer
from genai_tools.optimize.pillow import PillowOptimizer
from genai_tools.optimize.pngquant import PngquantOptimizer


def make_png(path: Path, size: int = 64) -> bytes:
    """生成带渐变的 PNG，保证有足够多的颜色"""
    img = Image.new("RGB", (size, size))
    img.putdata([(x * 4 % 256, y * 4 % 256, (x + y) * 2 % 256) for y in range(size) for x in range(size)])
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    path.write_bytes(buf.getvalue())
    return buf.getvalue()


def make_jpeg(path: Path) -> bytes:
    img = Image.new("RGB", (64, 64), (200, 120, 40))
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=100)
    path.write_bytes(buf.getvalue())
    return buf.getvalue()


class TestNullOptimizer:
    def test_no_op(self, tmp_path):
        path = tmp_path / "a.png"
        original = make_png(path)

        outcome = NullOptimizer().optimize(path)

        assert outcome.succeeded
        assert not outcome.attempted
        assert outcome.initial_size == outcome.final_size == len(original)
        assert path.read_bytes() == original


class TestPngquantOptimizer:
    def test_probe_shell_disabled(self):
        status = PngquantOptimizer(allow_shell=False).probe()
        assert not status.available
        assert "disabled" in status.message

    def test_probe_binary_missing(self):
        with patch("genai_tools.optimize.pngquant.shutil.which", return_value=None):
            status = PngquantOptimizer().probe()
        assert not status.available
        assert "could not be found" in status.message

    def test_unavailable_skips_subprocess(self, tmp_path):
        path = tmp_path / "a.png"
        original = make_png(path)

        with patch("genai_tools.optimize.pngquant.shutil.which", return_value=None), \
                patch("genai_tools.optimize.pngquant.subprocess.run") as run:
            outcome = PngquantOptimizer().optimize(path)

        run.assert_not_called()
        assert not outcome.succeeded
        assert outcome.tool is OptimizerTool.PNGQUANT
        assert "pngquant" in outcome.message
        assert path.read_bytes() == original

    def test_success_reads_new_size(self, tmp_path):
        path = tmp_path / "a.png"
        original = make_png(path)

        def fake_run(command, **kwargs):
            path.write_bytes(original[: len(original) // 2])
            return subprocess.CompletedProcess(command, 0, "", "")

        with patch("genai_tools.optimize.pngquant.shutil.which", return_value="/usr/bin/pngquant"), \
                patch("genai_tools.optimize.pngquant.subprocess.run", side_effect=fake_run) as run:
            outcome = PngquantOptimizer().optimize(path)

        assert outcome.succeeded
        assert outcome.initial_size == len(original)
        assert outcome.final_size == len(original) // 2
        command = run.call_args.args[0]
        assert command == [
            "/usr/bin/pngquant", "--force", "--quality=65-80", "--skip-if-larger",
            "--output", str(path), "--", str(path),
        ]

    @pytest.mark.parametrize("exit_code", [98, 99])
    def test_skip_exit_codes_are_success(self, tmp_path, exit_code):
        path = tmp_path / "a.png"
        original = make_png(path)
        completed = subprocess.CompletedProcess([], exit_code, "", "skipped")

        with patch("genai_tools.optimize.pngquant.shutil.which", return_value="/usr/bin/pngquant"), \
                patch("genai_tools.optimize.pngquant.subprocess.run", return_value=completed):
            outcome = PngquantOptimizer().optimize(path)

        assert outcome.succeeded
        assert outcome.initial_size == outcome.final_size == len(original)

    def test_other_exit_code_is_failure(self, tmp_path, caplog):
        path = tmp_path / "a.png"
        original = make_png(path)
        completed = subprocess.CompletedProcess([], 15, "", "error: cannot open file")

        with patch("genai_tools.optimize.pngquant.shutil.which", return_value="/usr/bin/pngquant"), \
                patch("genai_tools.optimize.pngquant.subprocess.run", return_value=completed):
            outcome = PngquantOptimizer().optimize(path)

        assert outcome.attempted
        assert not outcome.succeeded
        assert outcome.message == "pngquant execution failed."
        assert "cannot open file" in caplog.text
        assert path.read_bytes() == original

    def test_timeout_is_failure(self, tmp_path):
        path = tmp_path / "a.png"
        make_png(path)

        with patch("genai_tools.optimize.pngquant.shutil.which", return_value="/usr/bin/pngquant"), \
                patch("genai_tools.optimize.pngquant.subprocess.run",
                      side_effect=subprocess.TimeoutExpired("pngquant", 60)):
            outcome = PngquantOptimizer().optimize(path)

        assert not outcome.succeeded
        assert path.stat().st_size > 0

    def test_missing_file(self, tmp_path):
        with patch("genai_tools.optimize.pngquant.shutil.which", return_value="/usr/bin/pngquant"):
            outcome = PngquantOptimizer().optimize(tmp_path / "missing.png")
        assert not outcome.succeeded
        assert outcome.message == "Could not read file size."


class TestPillowOptimizer:
    def test_probe(self):
        assert PillowOptimizer().probe().available

    def test_png_quantized(self, tmp_path):
        path = tmp_path / "a.png"
        original = make_png(path)

        outcome = PillowOptimizer().optimize(path)

        assert outcome.succeeded
        assert outcome.initial_size == len(original)
        assert outcome.final_size == path.stat().st_size
        with Image.open(path) as img:
            assert img.format == "PNG"
            assert img.mode == "P"

    def test_jpeg_reencoded(self, tmp_path):
        path = tmp_path / "a.jpg"
        make_jpeg(path)

        outcome = PillowOptimizer().optimize(path)

        assert outcome.succeeded
        with Image.open(path) as img:
            assert img.format == "JPEG"
            assert img.size == (64, 64)

    def test_rgba_png(self, tmp_path):
        path = tmp_path / "a.png"
        Image.new("RGBA", (32, 32), (10, 20, 30, 128)).save(path, format="PNG")

        outcome = PillowOptimizer().optimize(path)

        assert outcome.succeeded

    def test_corrupt_file_left_untouched(self, tmp_path):
        path = tmp_path / "a.png"
        path.write_bytes(b"definitely not an image")

        outcome = PillowOptimizer().optimize(path)

        assert outcome.attempted
        assert not outcome.succeeded
        assert outcome.message.startswith("Pillow exception:")
        assert path.read_bytes() == b"definitely not an image"
        assert list(tmp_path.iterdir()) == [path]

    def test_png_metadata_removed(self, tmp_path):
        path = tmp_path / "a.png"
        exif = Image.Exif()
        exif[0x010E] = "camera notes"
        Image.new("RGB", (32, 32), (10, 200, 30)).save(
            path, format="PNG", icc_profile=b"fake-icc-profile", exif=exif.tobytes()
        )
        with Image.open(path) as img:
            assert img.info.get("icc_profile")

        outcome = PillowOptimizer().optimize(path)

        assert outcome.succeeded
        with Image.open(path) as img:
            assert not img.info.get("icc_profile")
            assert not img.info.get("exif")
            assert 0x010E not in img.getexif()

    def test_jpeg_metadata_removed(self, tmp_path):
        path = tmp_path / "a.jpg"
        exif = Image.Exif()
        exif[0x010E] = "camera notes"
        Image.new("RGB", (32, 32), (10, 200, 30)).save(
            path, format="JPEG", icc_profile=b"fake-icc-profile", exif=exif.tobytes()
        )

        outcome = PillowOptimizer().optimize(path)

        assert outcome.succeeded
        with Image.open(path) as img:
            assert not img.info.get("icc_profile")
            assert not img.info.get("exif")

    def test_gif_resaved(self, tmp_path):
        path = tmp_path / "a.gif"
        frames = [Image.new("P", (8, 8), color) for color in (1, 2)]
        frames[0].save(path, format="GIF", save_all=True, append_images=frames[1:])

        outcome = PillowOptimizer().optimize(path)

        assert outcome.succeeded
        with Image.open(path) as img:
            assert img.format == "GIF"
            assert img.n_frames == 2

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "a.gif"
        Image.new("RGB", (8, 8)).save(path, format="GIF")
        original = path.read_bytes()
        Image.init()

        with patch.dict(Image.SAVE, {}, clear=True):
            outcome = PillowOptimizer().optimize(path)

        assert not outcome.succeeded
        assert "Unsupported" in outcome.message
        assert path.read_bytes() == original
