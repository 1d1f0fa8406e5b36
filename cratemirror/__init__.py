"""crate-mirror - Cargo 依赖私有镜像工具"""

__version__ = "0.3.0"
