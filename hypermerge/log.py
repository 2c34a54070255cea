import logging

logger = logging.getLogger("hypermerge")


class RankAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f"Process {self.extra['rank']}: {msg}", kwargs


def get_logger(rank):
    return RankAdapter(logger, {"rank": rank})


def format_list(title, items):
    # One string per dump so lines from different ranks don't interleave
    return f"{title} > " + " ".join(str(x) for x in items)
