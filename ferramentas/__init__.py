"""Ferramentas — ツール EC バックエンド (トランザクション DB + 分析 DB への投影)"""
