from __future__ import annotations

import base64
import io
import json
from io import BytesIO
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

from gemini_imagegen import main as cli
from gemini_imagegen.utils.errors import ImageGenErrorCode, ImageGenException


def _build_png_bytes() -> bytes:
    image = Image.new("RGB", (16, 16), (0, 0, 255))
    output = BytesIO()
    image.save(output, format="PNG")
    return output.getvalue()


PNG_BYTES = _build_png_bytes()


class _FakeGemini:
    """替换 gemini 模块中的 get_json/post_json，记录请求并返回预设响应。"""

    def __init__(self) -> None:
        self.posts: list[dict[str, Any]] = []
        self.gets: list[dict[str, Any]] = []
        self.generate_data: dict[str, Any] = {
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {"text": "Generated."},
                            {
                                "inlineData": {
                                    "mimeType": "image/png",
                                    "data": base64.b64encode(PNG_BYTES).decode("ascii"),
                                }
                            },
                        ]
                    }
                }
            ]
        }
        self.catalog: dict[str, Any] = {
            "models": [
                {"name": "models/gemini-2.5-pro", "description": "Text model"},
                {
                    "name": "models/gemini-2.5-flash-image",
                    "description": "A model with image generation support and a very long description text here",
                },
                {"name": "models/imagen-4.0-generate-001", "description": ""},
            ]
        }
        self.error: ImageGenException | None = None

    async def get_json(self, *, url: str, params: dict[str, str], **_: Any) -> dict[str, Any]:
        self.gets.append({"url": url, "params": params})
        return {"data": self.catalog, "text": json.dumps(self.catalog), "elapsed_ms": 1}

    async def post_json(
        self, *, url: str, payload: dict[str, Any], params: dict[str, str], **_: Any
    ) -> dict[str, Any]:
        self.posts.append({"url": url, "payload": payload, "params": params})
        if self.error is not None:
            raise self.error
        return {
            "data": self.generate_data,
            "text": json.dumps(self.generate_data),
            "elapsed_ms": 7,
        }


@pytest.fixture
def fake_gemini(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, config_dir: Path
) -> _FakeGemini:
    fake = _FakeGemini()
    monkeypatch.setattr("gemini_imagegen.providers.gemini.get_json", fake.get_json)
    monkeypatch.setattr("gemini_imagegen.providers.gemini.post_json", fake.post_json)
    monkeypatch.setattr(cli, "configure_logging", lambda **_: None)
    workdir = tmp_path / "work"
    workdir.mkdir()
    # 空 .env 截断向上查找，避免读到宿主机上的文件。
    (workdir / ".env").write_text("", encoding="utf-8")
    monkeypatch.chdir(workdir)
    monkeypatch.setenv("GEMINI_IMAGE_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    return fake


def test_generate_writes_image_and_prints_absolute_path(
    fake_gemini: _FakeGemini,
    config_dir: Path,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """验证：成功时写入图片，stdout 只输出绝对路径，进度信息写到 stderr。"""
    exit_code = cli.main(["-p", "A cat", "-m", "model-x", "-o", "out/cat.png"])

    captured = capsys.readouterr()
    expected = tmp_path / "work" / "out" / "cat.png"
    assert exit_code == 0
    assert captured.out == f"{expected}\n"
    assert expected.read_bytes() == PNG_BYTES
    assert "Prompt: A cat" in captured.err
    assert "Model: model-x" in captured.err
    assert "Response: Generated." in captured.err
    assert fake_gemini.posts[0]["url"].endswith("/model-x:generateContent")
    assert fake_gemini.posts[0]["params"] == {"key": "test-key"}
    assert fake_gemini.posts[0]["payload"]["contents"][0]["parts"] == [{"text": "A cat"}]
    assert (config_dir / "model").read_text(encoding="utf-8") == "model-x"
    assert (config_dir / "last-output").read_text(encoding="utf-8") == str(expected)


def test_model_flag_is_cached_across_invocations(fake_gemini: _FakeGemini) -> None:
    """验证：先用 -m foo 运行，再不带 -m 运行时仍使用 foo。"""
    assert cli.main(["-p", "first", "-m", "foo"]) == 0
    assert cli.main(["-p", "second"]) == 0

    assert fake_gemini.posts[1]["url"].endswith("/foo:generateContent")
    assert fake_gemini.gets == []


def test_use_last_output_sends_it_as_input_image(
    fake_gemini: _FakeGemini, capsys: pytest.CaptureFixture[str]
) -> None:
    """验证：-L 把上一次输出作为参考图发送，MIME 由扩展名推断。"""
    assert cli.main(["-p", "draw", "-m", "m", "-o", "first.png"]) == 0
    capsys.readouterr()

    assert cli.main(["-L", "-p", "make it red", "-o", "second.png"]) == 0

    err = capsys.readouterr().err
    parts = fake_gemini.posts[1]["payload"]["contents"][0]["parts"]
    assert "Using last output:" in err
    assert parts[0] == {"text": "make it red"}
    assert parts[1]["inlineData"]["mimeType"] == "image/png"
    assert base64.b64decode(parts[1]["inlineData"]["data"]) == PNG_BYTES


def test_use_last_without_history_fails(
    fake_gemini: _FakeGemini, capsys: pytest.CaptureFixture[str]
) -> None:
    """验证：没有上一次输出时 -L 报错退出。"""
    exit_code = cli.main(["-L", "-p", "edit"])

    assert exit_code == 1
    assert "No previous image found" in capsys.readouterr().err
    assert fake_gemini.posts == []


def test_use_last_with_deleted_file_warns(
    fake_gemini: _FakeGemini, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """验证：记录的上一次输出已被删除时输出告警并失败。"""
    assert cli.main(["-p", "draw", "-m", "m", "-o", "gone.png"]) == 0
    (tmp_path / "work" / "gone.png").unlink()
    capsys.readouterr()

    exit_code = cli.main(["-L", "-p", "edit"])

    err = capsys.readouterr().err
    assert exit_code == 1
    assert "last output file no longer exists" in err


def test_prompt_file_takes_precedence(
    fake_gemini: _FakeGemini, tmp_path: Path
) -> None:
    """验证：-f 读取的提示词优先于 -p。"""
    prompt_file = tmp_path / "prompt.txt"
    prompt_file.write_text("from file", encoding="utf-8")

    assert cli.main(["-p", "inline", "-f", str(prompt_file), "-m", "m"]) == 0

    assert fake_gemini.posts[0]["payload"]["contents"][0]["parts"] == [
        {"text": "from file"}
    ]


def test_missing_prompt_file_fails(
    fake_gemini: _FakeGemini, capsys: pytest.CaptureFixture[str]
) -> None:
    """验证：提示词文件读取失败时报错退出。"""
    assert cli.main(["-f", "missing.txt", "-m", "m"]) == 1
    assert "Cannot read prompt file" in capsys.readouterr().err


def test_non_utf8_prompt_file_fails(
    fake_gemini: _FakeGemini, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """验证：提示词文件不是 UTF-8 时报 FILE_IO_ERROR 退出，不发生成请求。"""
    prompt_file = tmp_path / "latin1.txt"
    prompt_file.write_bytes(b"caf\xe9 au lait")

    assert cli.main(["-f", str(prompt_file), "-m", "m"]) == 1
    assert "Cannot read prompt file" in capsys.readouterr().err
    assert fake_gemini.posts == []


def test_missing_input_image_fails(
    fake_gemini: _FakeGemini, capsys: pytest.CaptureFixture[str]
) -> None:
    """验证：参考图不存在时报错退出，不发生成请求。"""
    assert cli.main(["-i", "nope.jpg", "-p", "edit", "-m", "m"]) == 1
    assert "Cannot read input image" in capsys.readouterr().err
    assert fake_gemini.posts == []


def test_empty_prompt_prints_usage(
    fake_gemini: _FakeGemini, capsys: pytest.CaptureFixture[str]
) -> None:
    """验证：没有提示词时打印用法并以非零状态退出。"""
    exit_code = cli.main(["-m", "m"])

    err = capsys.readouterr().err
    assert exit_code == 1
    assert "usage: gemini-image" in err
    assert "Prompt is required" in err
    assert fake_gemini.posts == []


def test_list_models_prints_image_models(
    fake_gemini: _FakeGemini, capsys: pytest.CaptureFixture[str]
) -> None:
    """验证：-l 只列出生图模型，描述截断到 70 个字符。"""
    assert cli.main(["-l"]) == 0

    out = capsys.readouterr().out.splitlines()
    assert out[0] == "Available image generation models:"
    assert out[1] == "  gemini-2.5-flash-image"
    assert out[2].startswith("    A model with image generation")
    assert out[2].endswith("...")
    assert len(out[2].strip()) == 73
    assert out[3] == "  imagen-4.0-generate-001"
    assert len(out) == 4
    assert fake_gemini.gets[0]["params"] == {"key": "test-key"}


def test_interactive_selection_reads_stdin(
    fake_gemini: _FakeGemini,
    monkeypatch: pytest.MonkeyPatch,
    config_dir: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """验证：无缓存时从 stdin 读取序号选择模型并缓存。"""
    monkeypatch.setattr("sys.stdin", io.StringIO("2\n"))

    assert cli.main(["-p", "A cat"]) == 0

    err = capsys.readouterr().err
    assert "[1] gemini-2.5-flash-image" in err
    assert "[2] imagen-4.0-generate-001" in err
    assert (config_dir / "model").read_text(encoding="utf-8") == "imagen-4.0-generate-001"


def test_reset_removes_config_dir(
    fake_gemini: _FakeGemini, config_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """验证：-reset 删除配置目录后退出，不需要 API key。"""
    assert cli.main(["-p", "x", "-m", "m"]) == 0
    assert config_dir.exists()

    assert cli.main(["-reset"]) == 0

    assert not config_dir.exists()
    assert "Config reset" in capsys.readouterr().err


def test_api_error_reports_status_and_body(
    fake_gemini: _FakeGemini, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """验证：上游 API 错误时输出状态码与响应体，且不写文件。"""
    fake_gemini.error = ImageGenException(
        code=ImageGenErrorCode.API_ERROR,
        message="Gemini API error 400",
        detail={"status_code": 400, "body": '{"error": "bad prompt"}'},
    )

    exit_code = cli.main(["-p", "x", "-m", "m"])

    err = capsys.readouterr().err
    assert exit_code == 1
    assert "Gemini API error 400" in err
    assert "bad prompt" in err
    assert not (tmp_path / "work" / "output.png").exists()


def test_no_image_in_response_fails_with_body(
    fake_gemini: _FakeGemini, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """验证：响应中没有图片时失败退出，输出原始响应体，且不创建文件。"""
    fake_gemini.generate_data = {
        "candidates": [{"content": {"parts": [{"text": "blocked"}]}}]
    }

    exit_code = cli.main(["-p", "x", "-m", "m"])

    err = capsys.readouterr().err
    assert exit_code == 1
    assert "No image in response" in err
    assert "blocked" in err
    assert not (tmp_path / "work" / "output.png").exists()


def test_missing_api_key_fails(
    fake_gemini: _FakeGemini,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """验证：没有任何 API key 时报错退出。"""
    monkeypatch.delenv("GEMINI_API_KEY")

    assert cli.main(["-p", "x", "-m", "m"]) == 1
    assert "No API key found" in capsys.readouterr().err
