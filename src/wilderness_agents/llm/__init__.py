"""LLM 协作者边界与端点管理。"""
