from zing.zing_config import VERSION as __version__
from zing.zing_runtime import ScriptRunner

__all__ = ["ScriptRunner", "__version__"]
