"""tlcatalog - TeX Live 包目录解析与环境组装"""

__version__ = "0.3.0"
