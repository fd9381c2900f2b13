#!/usr/bin/env python
"""JSON シードデータを Firestore（エミュレータを含む）へ流し込むユーティリティ。

`python -m parlons.seed` のラッパー。接続先プロジェクトとエミュレータを引数で指定できる。
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--project-id",
        default=os.environ.get("FIRESTORE_PROJECT_ID", "parlons-local"),
        help="適用先 Firestore プロジェクト ID（既定: parlons-local）。",
    )
    parser.add_argument(
        "--emulator-host",
        default=os.environ.get("FIRESTORE_EMULATOR_HOST", "127.0.0.1:8080"),
        help="FIRESTORE_EMULATOR_HOST に渡すホスト:ポート。空文字で本番 Firestore へ接続。",
    )
    return parser


def main() -> int:
    args, seed_args = _build_parser().parse_known_args()

    # 設定クラスは import 時点で環境変数を読むため、先に上書きしてから parlons を読み込む。
    os.environ.setdefault("FIRESTORE_PROJECT_ID", str(args.project_id))
    os.environ.setdefault("GOOGLE_CLOUD_PROJECT", str(args.project_id))
    if args.emulator_host:
        os.environ.setdefault("FIRESTORE_EMULATOR_HOST", str(args.emulator_host))

    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root / "apps" / "backend"))

    from parlons.seed import main as seed_main

    return seed_main(seed_args)


if __name__ == "__main__":
    sys.exit(main())
