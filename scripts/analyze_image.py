# scripts/analyze_image.py
"""
用法：python -m scripts.analyze_image cat.png --endpoint http://localhost:8000/api/v1/analyze-image/
JSON 模式會先把圖片上傳到設定的 storage，再把 public URL 交給服務。
"""
import argparse
import asyncio
import sys

import httpx

from app.client.controller import SelectedFile, UploadController, UploadState
from app.client.display import render_results
from app.core.config import settings
from app.core.errors import InvalidFileType
from app.services.storage import build_storage


async def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Analyze an image with the picture dictionary service")
    parser.add_argument("path")
    parser.add_argument("--endpoint", default=f"http://localhost:8000{settings.API_V1_PREFIX}/analyze-image/")
    parser.add_argument("--mode", choices=["json", "multipart"], default=settings.ANALYSIS_INPUT_MODE)
    args = parser.parse_args(argv)

    storage = None if args.mode == "multipart" else build_storage(settings)
    async with httpx.AsyncClient(timeout=settings.INFERENCE_TIMEOUT_SEC + 10) as http:
        controller = UploadController(
            http,
            args.endpoint,
            mode=args.mode,
            storage=storage,
            on_change=lambda s: print(f"... {s.state.value}", file=sys.stderr),
        )
        try:
            session = await controller.select_file(SelectedFile.from_path(args.path))
        except InvalidFileType as exc:
            print(f"Invalid file type: {exc}", file=sys.stderr)
            return 2
        finally:
            if storage is not None:
                await storage.aclose()

    if session.state is UploadState.ERROR:
        print(f"Analysis failed: {session.error}", file=sys.stderr)
        return 1
    if session.warning:
        print(f"Warning: {session.warning}", file=sys.stderr)
    print(render_results(session.results))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
