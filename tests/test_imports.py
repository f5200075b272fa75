# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_icebox

def test_import_coreason_icebox_package():
    """Tests that the public API is importable from the package root."""
    try:
        import coreason_icebox
        from coreason_icebox import (
            AsyncIcebox,
            Icebox,
            IceboxConfig,
            IceboxSetupError,
            LineTester,
            PathEscapeError,
            RunResult,
        )
    except ImportError as e:
        assert False, f"Failed to import from the 'coreason_icebox' package: {e}"

    assert coreason_icebox.__version__ == "0.1.0"
    assert issubclass(PathEscapeError, IceboxSetupError)
