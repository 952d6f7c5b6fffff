[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gamebase"
version = "0.1.0"
description = "Game support utilities: sprite atlases and packing, PNG I/O, collision tests, chunked binary files and a software audio mixer."
requires-python = ">=3.10"
keywords = ["game", "sprites", "atlas", "collision", "audio", "mixer", "png"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Games/Entertainment",
    "Topic :: Multimedia :: Graphics",
    "Topic :: Multimedia :: Sound/Audio :: Mixers",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
pack-sprites = "gamebase.pack_sprites:main"

[tool.hatch.build.targets.wheel]
packages = ["gamebase"]

[tool.pytest.ini_options]
addopts = "-ra"
