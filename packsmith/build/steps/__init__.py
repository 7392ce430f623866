"""构建步骤"""

from .appimage_step import APP_DIR, AppImageCompileStep, AppImageToolStep
from .build_step import BuildStep
from .deb_step import DATA_DIR, DebAssembleStep, DebControlStep
from .libs_step import EmbedLibsStep
from .nsis_step import NSIS_DIR, NsisCompileStep, NsisScriptStep
from .rpm_step import ROOT_DIR, RpmBuildStep, RpmSpecStep
from .staging_step import PrepareStagingStep, StageFilesStep

__all__ = [
    "APP_DIR",
    "AppImageCompileStep",
    "AppImageToolStep",
    "BuildStep",
    "DATA_DIR",
    "DebAssembleStep",
    "DebControlStep",
    "EmbedLibsStep",
    "NSIS_DIR",
    "NsisCompileStep",
    "NsisScriptStep",
    "ROOT_DIR",
    "RpmBuildStep",
    "RpmSpecStep",
    "PrepareStagingStep",
    "StageFilesStep",
]
