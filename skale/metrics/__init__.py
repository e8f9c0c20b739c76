"""Normalized workload telemetry, series statistics and readiness evaluation."""