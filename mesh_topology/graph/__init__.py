"""拓扑图构建"""
