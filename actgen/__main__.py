"""
actgen CLI エントリポイント

python -m actgen で CLI を起動する。

使用例:
  python -m actgen serve --headless            # MCP サーバーを起動
  python -m actgen generate session-xxx.json   # スナップショットからテスト生成
"""

from __future__ import annotations

from .cli import app

app(prog_name="actgen")
