from spriteib.feeds.atom import FeedEntry, render_atom_feed

__all__ = ["FeedEntry", "render_atom_feed"]
