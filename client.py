"""
client.py
Desktop chat window: joins one room, shows a scrolling transcript and sends messages.
Usage: python client.py --name Alice [--room general] [--user-id ID] [--url ws://localhost:4000/ws]
"""
import argparse
import queue
import threading
import tkinter as tk
from tkinter import messagebox, scrolledtext

from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI
from websockets.sync.client import connect as ws_connect

from client_session import ChatSession

DEFAULT_URL = 'ws://localhost:4000/ws'

DARK_GREY = '#121212'
MEDIUM_GREY = '#1F1B24'
OCEAN_BLUE = '#464EB8'
WHITE = "white"
FONT = ("Helvetica", 17)
BUTTON_FONT = ("Helvetica", 15)
SMALL_FONT = ("Helvetica", 13)
STATUS_FONT = ("Helvetica", 11, "italic")


class ChatWindow:
    def __init__(self, root, url, room, author, user_id=None):
        self.root = root
        self.url = url
        self.ws = None
        self.inbox = queue.Queue()
        self.session = ChatSession(self._send_raw, room=room, author=author, user_id=user_id)

        root.geometry("600x600")
        root.title(f"Chat - #{room}")
        root.resizable(False, False)
        root.grid_rowconfigure(0, weight=1)
        root.grid_rowconfigure(1, weight=4)
        root.grid_rowconfigure(2, weight=1)

        top_frame = tk.Frame(root, width=600, height=60, bg=DARK_GREY)
        top_frame.grid(row=0, column=0, sticky=tk.NSEW)
        middle_frame = tk.Frame(root, width=600, height=440, bg=MEDIUM_GREY)
        middle_frame.grid(row=1, column=0, sticky=tk.NSEW)
        bottom_frame = tk.Frame(root, width=600, height=100, bg=DARK_GREY)
        bottom_frame.grid(row=2, column=0, sticky=tk.NSEW)

        tk.Label(top_frame, text=f"#{room} as {author}", font=FONT, bg=DARK_GREY, fg=WHITE).pack(side=tk.LEFT, padx=10)

        self.message_box = scrolledtext.ScrolledText(middle_frame, font=SMALL_FONT, bg=MEDIUM_GREY, fg=WHITE, width=67, height=24)
        self.message_box.config(state=tk.DISABLED)
        self.message_box.pack(side=tk.TOP)
        self.status_label = tk.Label(middle_frame, text="", font=STATUS_FONT, bg=MEDIUM_GREY, fg=WHITE, anchor=tk.W)
        self.status_label.pack(side=tk.TOP, fill=tk.X, padx=10)

        self.message_textbox = tk.Entry(bottom_frame, font=FONT, bg=MEDIUM_GREY, fg=WHITE, width=38)
        self.message_textbox.pack(side=tk.LEFT, padx=10)
        self.message_textbox.bind('<Return>', lambda _e: self.send_message())
        self.message_textbox.bind('<KeyRelease>', self._on_key)
        tk.Button(bottom_frame, text="Send", font=BUTTON_FONT, bg=OCEAN_BLUE, fg=WHITE, command=self.send_message).pack(side=tk.LEFT, padx=10)

        root.protocol("WM_DELETE_WINDOW", self.close)

    def _send_raw(self, text):
        if self.ws is not None:
            self.ws.send(text)

    def connect(self):
        try:
            self.ws = ws_connect(self.url)
        except (OSError, InvalidURI, InvalidHandshake) as e:
            messagebox.showerror("Unable to connect to server", f"Unable to connect to {self.url}: {e}")
            return False
        self.session.on_open()
        threading.Thread(target=self._listen, daemon=True).start()
        self.root.after(50, self._drain)
        return True

    def _listen(self):
        # runs off the Tk thread; frames are handed over through the queue
        try:
            for raw in self.ws:
                self.inbox.put(raw)
        except ConnectionClosed:
            pass
        self.inbox.put(None)

    def _drain(self):
        changed = False
        while True:
            try:
                raw = self.inbox.get_nowait()
            except queue.Empty:
                break
            if raw is None:
                self.status_label.config(text="Disconnected from server")
                return
            if self.session.handle(raw) in ('load_history', 'receive_message'):
                changed = True
        if changed:
            self._redraw()
        self.status_label.config(text=self.session.status_text)
        self.root.after(50, self._drain)

    def _redraw(self):
        self.message_box.config(state=tk.NORMAL)
        self.message_box.delete('1.0', tk.END)
        for entry in self.session.transcript:
            self.message_box.insert(tk.END, self.session.render(entry) + '\n')
        self.message_box.config(state=tk.DISABLED)
        self.message_box.see(tk.END)

    def _on_key(self, _event):
        self.session.set_typing(bool(self.message_textbox.get().strip()))

    def send_message(self):
        if self.session.submit(self.message_textbox.get()):
            self.message_textbox.delete(0, tk.END)

    def close(self):
        if self.ws is not None:
            self.ws.close()
        self.root.destroy()


def main():
    parser = argparse.ArgumentParser(description='Room chat desktop client')
    parser.add_argument('--name', default='You', help='author name shown to others')
    parser.add_argument('--room', default='general')
    parser.add_argument('--user-id', default=None, help='profile id to mark online')
    parser.add_argument('--url', default=DEFAULT_URL)
    args = parser.parse_args()

    root = tk.Tk()
    window = ChatWindow(root, args.url, args.room, args.name, user_id=args.user_id)
    if window.connect():
        root.mainloop()


if __name__ == '__main__':
    main()
