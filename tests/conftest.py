import pytest

from miniml import FastTensorBackend, SimpleBackend


@pytest.fixture(params=[SimpleBackend, FastTensorBackend], ids=["simple", "fast"])
def backend(request):
    return request.param
