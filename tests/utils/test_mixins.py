from geoanchor.utils.mixins import LoggingMixin


class _Logged(LoggingMixin):
    pass


def test_logging_mixin_name():
    assert _Logged().logger.name == f'{__name__}._Logged'
    assert _Logged('child').logger.name == f'{__name__}._Logged.child'
