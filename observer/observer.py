#!/usr/bin/env python3
"""
burnbox scale observer:
- Reads the target Deployment's desired / ready replicas from the Kubernetes API
- Queries Prometheus for the Deployment's CPU usage (cores)
- Re-exports both as gauges and counts every replica change it sees
Run it next to the driver to watch the HPA react to /burn load.
"""
import argparse
import logging
import time

import yaml
from prometheus_client import start_http_server, Gauge, Counter
from kubernetes import client, config as k8s_config
from prometheus_api_client import PrometheusConnect

logger = logging.getLogger(__name__)

OBSERVED_REPLICAS = Gauge("burnbox_observed_replicas", "Desired replicas of the observed deployment")
OBSERVED_READY = Gauge("burnbox_observed_ready_replicas", "Ready replicas of the observed deployment")
OBSERVED_CPU = Gauge("burnbox_observed_cpu_cores", "CPU cores used by the observed deployment")
SCALE_EVENTS = Counter("burnbox_observed_scale_events_total", "Replica count changes seen")

DEFAULT_CPU_QUERY = (
    'sum(rate(container_cpu_usage_seconds_total'
    '{{namespace="{namespace}", pod=~"{name}-.*", container!=""}}[1m]))'
)


class ScaleObserver:
    def __init__(self, cfg, apps=None, prom=None):
        self.cfg = cfg
        self.deployment = cfg['deployment']
        # Prometheus
        self.prom = prom or PrometheusConnect(url=cfg['prometheus']['url'], disable_ssl=True)
        # kube
        if apps is None:
            if cfg.get("in_cluster"):
                k8s_config.load_incluster_config()
            else:
                k8s_config.load_kube_config()
            apps = client.AppsV1Api()
        self.apps = apps
        self.cpu_query = cfg.get("cpu_query") or DEFAULT_CPU_QUERY.format(**self.deployment)
        self.interval = cfg.get("interval_s", 15)
        self.last_replicas = None

    def query_cpu(self):
        try:
            res = self.prom.custom_query(self.cpu_query)
            if res and 'value' in res[0]:
                return float(res[0]['value'][1])
        except Exception as e:
            logger.warning("[observer] prometheus query error: %s", e)
        return None

    def read_replicas(self):
        ns = self.deployment['namespace']; name = self.deployment['name']
        dep = self.apps.read_namespaced_deployment(name, ns)
        return dep.spec.replicas, dep.status.ready_replicas or 0

    def poll_once(self):
        sample = {"cpu": self.query_cpu(), "replicas": None, "ready": None}
        if sample["cpu"] is not None:
            OBSERVED_CPU.set(sample["cpu"])
        try:
            sample["replicas"], sample["ready"] = self.read_replicas()
        except Exception as e:
            logger.warning("[observer] error reading replicas: %s", e)
            return sample
        OBSERVED_REPLICAS.set(sample["replicas"])
        OBSERVED_READY.set(sample["ready"])
        if self.last_replicas is not None and sample["replicas"] != self.last_replicas:
            SCALE_EVENTS.inc()
            logger.info("[observer] %s scaled %d -> %d",
                        self.deployment['name'], self.last_replicas, sample["replicas"])
        self.last_replicas = sample["replicas"]
        logger.info("[observer] cpu=%s replicas=%s ready=%s",
                    sample["cpu"], sample["replicas"], sample["ready"])
        return sample

    def run_loop(self, iterations=None):
        n = 0
        while iterations is None or n < iterations:
            self.poll_once()
            n += 1
            time.sleep(self.interval)


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", default="observer.yaml")
    args = parser.parse_args(argv)
    with open(args.config) as fh:
        cfg = yaml.safe_load(fh)
    logging.basicConfig(level=cfg.get("log_level", "INFO"),
                        format="%(asctime)s %(levelname)s %(name)s %(message)s")
    start_http_server(cfg.get("metrics_port", 9102))
    ScaleObserver(cfg).run_loop()


if __name__ == "__main__":
    main()
