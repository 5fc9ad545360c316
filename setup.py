from setuptools import find_packages, setup


APP_NAME = "scenekit"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Persistent 3D scene graph with face-to-face snapping, versioned storage and sandboxed bulk edits"


install_requires = [
    "numpy>=1.24",
]

extras_require = {
    "test": [
        "pytest>=7.0",
    ],
}

setup(
    name=APP_NAME,
    version=APP_VERSION,
    description=APP_DESCRIPTION,
    packages=find_packages(include=["scenekit", "scenekit.*"]),
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={
        "console_scripts": [
            "scenekit=scenekit.__main__:main",
        ],
    },
)
