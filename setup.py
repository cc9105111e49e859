from setuptools import setup, find_packages

setup(
    name="bitround",
    version="0.1.0",
    description="Integer rounding and bit-fault emulation for PyTorch",
    author="RetamalVictor",
    packages=find_packages(include=["bitround", "bitround.*"]),
    python_requires=">=3.8",
    install_requires=[
        "torch>=2.0.0",
    ],
    extras_require={
        "test": ["pytest", "numpy"],
    },
)
