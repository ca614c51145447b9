from setuptools import setup

setup(
    name="covax",
    version="0.1.0",
    description="Composable, differentiable covariance kernels in Jax.",
    author="GCHQ",
    packages=["covax", "covax.kernels"],
    install_requires=[
        "equinox",
        "jax",
        "jaxtyping",
        "numpy",
        "typing_extensions",
    ],
    extras_require={
        "dev": [
            "black",
            "isort",
            "optax",
            "pytest",
            "scikit-learn",
        ],
    },
)
