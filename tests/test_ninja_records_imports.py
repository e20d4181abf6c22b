"""Test that all public exports are importable."""


def test_ninja_records_imports():
    import ninja_records

    assert ninja_records is not None


def test_public_api_exports():
    import ninja_records

    for name in ninja_records.__all__:
        assert getattr(ninja_records, name) is not None, name
