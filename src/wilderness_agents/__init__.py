"""野外安全情报：基于大模型的天气、危险、地形与火情汇总。"""

__version__ = "0.1.0"
