#
# Copyright (C) 2023 Intel Corporation
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
import logging
import sys
from functools import lru_cache
from typing import Any, Dict, Mapping, MutableMapping, Tuple, Union

LOGGER_NAME = "node-observability-utils"

LoggerType = Union[logging.Logger, logging.LoggerAdapter]


class Extra(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "extra"):
            record.extra = {}
        return True


class ExtraAdapter(logging.LoggerAdapter):
    """
    This adapter:
    1. Allows enriching messages with static and dynamic extra attributes, and
    2. Adds an attribute named "extra" to each record that contains all the extra attributes.

    Any non-standard keyword passed to a logging call (e.g. `logger.info("...", uid=uid)`) becomes an extra.
    """

    logging_kwargs = {"exc_info", "stack_info", "stacklevel", "extra"}

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] = None):
        super().__init__(logger, extra=extra or {})

    def get_extra(self, **kwargs: Any) -> Mapping[str, Any]:
        return {**self.extra, **kwargs.get("extra", {})}

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        logging_kwargs: Dict[str, Any] = {}
        other_kwargs = {}
        for k, v in kwargs.items():
            if k in self.logging_kwargs:
                logging_kwargs[k] = v
            else:
                other_kwargs[k] = v

        extra: Mapping[str, Any] = {**logging_kwargs.get("extra", {}), **other_kwargs}
        if extra:
            logging_kwargs["extra"] = extra

        extra = self.get_extra(**logging_kwargs)

        if logging_kwargs.get("exc_info") is True:
            exc_info = sys.exc_info()
            # Exceptions may carry their own extras, those take precedence:
            exc_extra = getattr(exc_info[1], "extra", None)
            if isinstance(exc_extra, dict):
                extra = {**extra, **exc_extra}

        logging_kwargs.update({"extra": {**extra, "extra": extra}})
        return msg, logging_kwargs


@lru_cache(maxsize=None)
def get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.addFilter(Extra())
    logger.addHandler(logging.NullHandler())
    return logger


def get_adapter(logger: LoggerType = None) -> ExtraAdapter:
    """
    Wraps `logger` (the library logger by default) so that keyword arguments are attached as extras.
    Adapters are passed through as-is.
    """
    if isinstance(logger, ExtraAdapter):
        return logger
    if isinstance(logger, logging.LoggerAdapter):
        return ExtraAdapter(logger.logger, logger.extra)
    return ExtraAdapter(logger if logger is not None else get_logger())
