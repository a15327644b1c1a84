from setuptools import find_packages, setup

PACKAGE_NAME = "netwatch_realtime"

base_requires = [
    "PyYAML>=6.0",
    "requests>=2.32",
]
test_requires = [
    "pytest>=8.0",
]

setup(
    name="netwatch-realtime",
    version="0.1.0",
    description="Real-time network metrics sampling and rule-based anomaly flagging",
    packages=find_packages(include=(PACKAGE_NAME, f"{PACKAGE_NAME}.*")),
    include_package_data=False,
    python_requires=">=3.10",
    install_requires=base_requires,
    extras_require={"test": test_requires},
    entry_points={
        "console_scripts": [
            "netwatch=netwatch_realtime.cli.app:main",
        ]
    },
)
