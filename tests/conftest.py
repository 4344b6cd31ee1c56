import sys
from pathlib import Path

import pytest

# Add the project root to sys.path so mdx_presenter imports without install
ROOT_PATH = Path(__file__).resolve().parent.parent
if ROOT_PATH.as_posix() not in sys.path:
    sys.path.insert(0, ROOT_PATH.as_posix())

import mdx_presenter  # noqa: E402


SAMPLE_DOCUMENT = """\
Welcome notes before any heading.

# Introduction

Plain text line.
- first item
  continued item text
- second item

## Details

| name | value |
|------|------:|
| a    | 1     |

```python
# not a slide heading
print("hi")
```

---

![diagram](img/diagram.png)
Closing words.
"""


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


@pytest.fixture
def sample_document():
    return SAMPLE_DOCUMENT


@pytest.fixture
def slides(sample_document):
    return mdx_presenter.segment_document(sample_document)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client():
    """Flask test client against a freshly reset module presenter."""
    mdx_presenter.presenter.load_document("")
    mdx_presenter.presenter.settings = mdx_presenter.PresenterSettings()
    mdx_presenter.presenter.configure_wheel(mdx_presenter.WheelConfig())
    mdx_presenter.app.config["TESTING"] = True
    with mdx_presenter.app.test_client() as c:
        yield c
