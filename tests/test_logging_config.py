import asyncio
import contextvars
import logging
import unittest
from logging.handlers import RotatingFileHandler

from voice_gateway.config.logging_config import (
    CallContextFilter,
    bind_call_label,
    configure_logging,
)


def make_record():
    return logging.LogRecord("voice_gateway", logging.INFO, __file__, 1, "hello", None, None)


class TestLoggingConfig(unittest.TestCase):
    def test_configure_logging(self):
        # Test that the function returns a logger
        logger = configure_logging()
        self.assertIsInstance(logger, logging.Logger)

        # Test that the logger has the correct name
        self.assertEqual(logger.name, "voice_gateway")

        # Test that the logger has the correct level
        self.assertEqual(logger.level, logging.INFO)

        # Test that the logger has the correct handlers and format
        self.assertGreaterEqual(len(logger.handlers), 1)  # At least one handler (console)
        handler = logger.handlers[0]  # Check first handler (should be console handler)
        self.assertIsInstance(handler, logging.StreamHandler)
        formatter = handler.formatter
        self.assertEqual(formatter._fmt, "%(asctime)s - %(name)s - %(levelname)s - [%(call)s] %(message)s")
        self.assertTrue(any(isinstance(f, CallContextFilter) for f in handler.filters))
        self.assertFalse(logger.propagate)

    def test_custom_level(self):
        logger = configure_logging("debug")
        self.assertEqual(logger.level, logging.DEBUG)

    def test_reconfigure_does_not_duplicate_handlers(self):
        configure_logging()
        logger = configure_logging()
        file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        self.assertLessEqual(len(file_handlers), 1)
        self.assertEqual(len(logger.handlers) - len(file_handlers), 1)


class TestCallContextFilter(unittest.TestCase):
    def test_record_outside_a_call(self):
        record = make_record()
        self.assertTrue(CallContextFilter().filter(record))
        self.assertEqual(record.call, "-")

    def test_label_is_read_when_logging(self):
        labels = {"current": "lead lead-7"}
        records = []

        def log_twice():
            bind_call_label(lambda: labels["current"])
            for _ in range(2):
                record = make_record()
                CallContextFilter().filter(record)
                records.append(record.call)
                labels["current"] = "CA123"

        contextvars.copy_context().run(log_twice)

        self.assertEqual(records, ["lead lead-7", "CA123"])
        # The binding stays inside the context it was made in
        outside = make_record()
        CallContextFilter().filter(outside)
        self.assertEqual(outside.call, "-")

    def test_concurrent_calls_keep_their_labels(self):
        async def call(label):
            bind_call_label(lambda: label)
            await asyncio.sleep(0)

            async def child():
                record = make_record()
                CallContextFilter().filter(record)
                return record.call

            return await asyncio.create_task(child())

        async def main():
            return await asyncio.gather(
                asyncio.create_task(call("CA1")), asyncio.create_task(call("CA2"))
            )

        self.assertEqual(asyncio.run(main()), ["CA1", "CA2"])


if __name__ == "__main__":
    unittest.main()
