# teletext-mirror: Yle 图文电视页面快照镜像
__version__ = "0.1.0"
